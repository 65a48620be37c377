from pathlib import Path

from aws_cdk import aws_lambda as _lambda

POWER_TOOLS_PYTHON_RUNTIME = "python312"
POWER_TOOLS_LAMBDA_LAYER_NAME = "AWSLambdaPowertoolsPythonV3"
POWER_TOOLS_LAMBDA_LAYER_ACCOUNT = "017000801446"
POWER_TOOLS_VERSION = "18"
POWER_TOOLS_ARCHITECTURE = "arm64"
POWER_TOOLS_LAYER = "arn:aws:lambda:{region}:{lambda_layer_account}:layer:{power_tools_type}-{runtime}-{architecture}:{version}"

PYTHON_RUNTIME = _lambda.Runtime.PYTHON_3_12
DEFAULT_ARCHITECTURE = _lambda.Architecture.ARM_64
LAMBDA_CODE_DIR = str(Path(__file__).resolve().parent.parent / "lambdas")

# Environments
DEFAULT_ENV = "prod"
PRODUCTION_ENV = "prod"
SUPPORTED_ENVS = ("prod", "staging", "dev")
PRODUCTION_LABEL = "production"
PRODUCTION_BRANCH = "main"
NON_PRODUCTION_BRANCH = "develop"

# Naming convention components
SERVICE_NAME = "firenze"  # The organisation / application name
DOMAIN = "web"  # The product area
COMPONENT_API = "api"
COMPONENT_WEBAPP = "webapp"
COMPONENT_NETWORK = "network"
COMPONENT_AUTH = "auth"

# DNS
ROOT_DOMAIN = "firenzegroup.co"

# Source control
API_REPOSITORY_URL = "https://github.com/firenzeme/web-api.git"
WEBAPP_REPOSITORY_URL = "https://github.com/firenzeme/webapp"
GITHUB_TOKEN_SECRET_NAME = "github-token"
PARAMETER_ROOT = "/firenze"

# Networking
VPC_CIDR = "10.0.0.0/16"
CIDR_MASK = 24
MAX_AZS = 2
NAT_GATEWAYS = 1
ANY_IPV4_CIDR = "0.0.0.0/0"

# API instance
API_PORT = 3001
HEALTH_CHECK_PATH = "/health"
APP_USER = "ec2-user"
APP_HOME = "/home/ec2-user"
APP_DIR = "/home/ec2-user/firenze-api"
NODE_MAJOR_VERSION = "20"
DEPLOY_LOG_FILE = "/var/log/deploy-api.log"
DEPLOY_SCRIPT_PATH = "/usr/local/bin/deploy-api"
APP_STAGE_SCRIPT_PATH = "/usr/local/bin/deploy-api-app"
REPO_DEPLOY_SCRIPT = "scripts/deploy-ec2.sh"

# Load balancer routing
STATIC_ASSET_PATH_PATTERN = "/assets/*"
CATCH_ALL_PATH_PATTERN = "/*"
CATCH_ALL_PRIORITY_OFFSET = 10
MAX_RULE_PRIORITY = 50000

# Webapp build
WEBAPP_MONOREPO_APP_ROOT = "webapp"
WEBAPP_NODE_VERSION = "20"

# Cognito hook
PRE_TOKEN_GENERATION_FUNCTION_NAME = "cognito-pre-token-generation"
PRE_TOKEN_GENERATION_EXPORT_NAME = "CognitoPreTokenGenerationLambdaArn"
