"""Shared constants for stepflow."""

DEFAULT_CONFIG_PATH = "stepflow.yaml"
CONFIG_ENV_VAR = "STEPFLOW_CONFIG"
DATABASE_URL_ENV_VAR = "STEPFLOW_DATABASE_URL"

# Attribute names looked up, in order, when a module step reference does not
# name one explicitly.
DEFAULT_STEP_ATTRIBUTES = ("step", "apply")

API_PREFIX = "/api/workflow"
API_RUNNING_MESSAGE = "workflow api running"
