"""User-facing text for the deploy conversation and pipeline progress."""

AWESOME = "Awesome!"
OK_ANOTHER_TIME = "OK, maybe another time."

REGISTER_EMPTY = "I don't know about any applications yet."
DEPLOY_PROMPT = "Would you like to register a GitHub repository to deploy?"
DEPLOY_PROMPT_DENY = "OK, nothing will be deployed."
PROMPT_NAME_AND_REPO = "Please provide the repository and the application name, e.g. `owner/repo my-app`."
CONFIRM_NAME_AND_REPO = "Deploy application {app} from repository {url}?"
DEPLOY_FAILURE = "OK, the deployment has been cancelled."

APP_SELECT = "Which application would you like to deploy?"
APP_SELECT_ENTRY = "{app}: {url}"

REGISTER_PROMPT = "That looks like a repository. Would you like to register it for deployment?"
REGISTER_NOT_HAPPENING = "OK, the repository will not be registered."
NAME_PROMPT = "What application name should be used for this repository?"
REGISTER_IN_PROGRESS = "Registering application {app} with repository {url}."

NAME_NOT_FOUND = "I don't know an application named {app}."
REPO_PROMPT = "Would you like to register a GitHub repository for it?"
REPO_NAME_PROMPT = "What is the repository, e.g. `owner/repo` or `owner/repo/tree/branch`?"
REPO_NAME_RETRY = "A repository reference must look like `owner/repo`."

IN_PROGRESS_MATCHING = "Deploying the application you asked for."
NAME_INVALID = "I could not determine the application name to deploy."
REPO_INVALID = "I could not determine the repository to deploy from."

BRANCH_PROMPT = "Which branch would you like to deploy?"
BRANCH_MENU_ENTRY = "({index})  {name}"
BRANCH_FREE_TEXT_PROMPT = "Which branch would you like to deploy? Reply with `branch <name>`."

IN_PROGRESS = "Deploying application {app} from branch {branch} of {url}."
OBTAINING_ZIP = "Obtaining the source archive for {app}."
CREATE_APP = "Creating application {app}."
ROUTE_ERROR = "The route for the application could not be set up: {error}"
UPLOADING_APP = "Uploading application {app} to organization {org}, space {space}."
STARTING_APP = "Application {app} is starting."
APP_COMPLETE = "Application {app} in organization {org}, space {space} is running. {url}"
APP_UNKNOWN = "Application {app} was started but its state is not yet known. Check its status in a few minutes."
DEPLOY_ERROR = "Deployment of application {app} failed: {error}"

HELP = (
    "deploy - Deployment setup with prompts for application, GitHub URL and branch.\n"
    "deploy <app> - Deploy a registered app, or register a GitHub URL for it.\n"
    "deploy <url> - Register a GitHub URL and prompt for the application name and branch.\n"
    "deploy <app> <url> - Deploy app from url, prompting for the branch if not provided."
)
