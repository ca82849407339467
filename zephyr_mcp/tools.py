"""
Tool catalog and dispatch.

TOOLS declares every tool exposed to the MCP host: its name, description,
input schema and handler. ToolDispatcher.call() is the single boundary where
tool invocations enter the package:

    1. Unknown tool name        -> MethodNotFoundError
    2. Arguments fail schema    -> ToolValidationError (no network call)
    3. Handler runs             -> result, or a classified ZephyrError
    4. Anything unclassified    -> InternalError (logged with tool + args)
"""

import logging
from typing import Any, Callable, Dict, NamedTuple, Optional

from .client import ZephyrClient
from .errors import InternalError, MethodNotFoundError, ZephyrError
from .services import (
    EnvironmentService,
    FolderService,
    LinkService,
    PriorityService,
    ProjectService,
    StatusService,
    TestCaseService,
    TestCycleService,
    TestExecutionService,
)
from .steps import STEP_MODES
from .validation import validate_arguments

logger = logging.getLogger(__name__)

TEST_SCRIPT_TYPES = ["STEP_BY_STEP", "BDD", "PLAIN"]
FOLDER_TYPES = ["TEST_CASE", "TEST_CYCLE"]
STATUS_TYPES = ["TEST_CASE", "TEST_CYCLE", "TEST_EXECUTION"]


class ToolSpec(NamedTuple):
    name: str
    description: str
    input_schema: dict
    handler: Callable[["Services", Dict[str, Any]], Any]


class Services(NamedTuple):
    """One instance of every resource service, sharing a single client."""
    test_cases: TestCaseService
    test_cycles: TestCycleService
    test_executions: TestExecutionService
    projects: ProjectService
    folders: FolderService
    statuses: StatusService
    priorities: PriorityService
    environments: EnvironmentService
    links: LinkService

    @classmethod
    def from_client(cls, client) -> "Services":
        return cls(
            test_cases=TestCaseService(client),
            test_cycles=TestCycleService(client),
            test_executions=TestExecutionService(client),
            projects=ProjectService(client),
            folders=FolderService(client),
            statuses=StatusService(client),
            priorities=PriorityService(client),
            environments=EnvironmentService(client),
            links=LinkService(client),
        )


# ============================================================================
# SCHEMA HELPERS
# ============================================================================

def _string(description: str = None, **extra) -> dict:
    schema = {"type": "string", **extra}
    if description:
        schema["description"] = description
    return schema


def _number(description: str = None) -> dict:
    schema = {"type": "number"}
    if description:
        schema["description"] = description
    return schema


def _schema(properties: dict, required=(), additional: bool = False, **extra) -> dict:
    schema = {"type": "object", "properties": properties, "required": list(required)}
    if additional:
        schema["additionalProperties"] = True
    schema.update(extra)
    return schema


LINKS = {"type": "array", "items": {"type": "object"}}

FLAT_STEPS = {
    "type": "array",
    "description": "Array of test step objects in simple format: {description, testData?, expectedResult}",
    "items": {
        "type": "object",
        "properties": {
            "description": _string("Step description"),
            "testData": _string("Test data for the step (optional)"),
            "expectedResult": _string("Expected result of the step"),
        },
        "required": ["description", "expectedResult"],
        "additionalProperties": False,
    },
}

STEPS_MODE = _string("Mode for writing test steps (default: OVERWRITE)", enum=list(STEP_MODES))

PAGINATION = {
    "maxResults": _number("Maximum number of results to return"),
    "startAt": _number("Zero-based offset of the first result"),
}


def _query(args: Dict[str, Any]) -> Dict[str, Any]:
    # Only scalar arguments can travel as query parameters
    return {
        key: value for key, value in args.items()
        if isinstance(value, (str, int, float, bool))
    }


def _without(args: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    return {key: value for key, value in args.items() if key not in keys}


# ============================================================================
# HANDLERS
# ============================================================================

def _get_test_case(services: Services, args: dict) -> dict:
    # A test case is returned together with all of its steps
    key = args["testCaseKey"]
    test_case = dict(services.test_cases.get_test_case(key) or {})
    steps = services.test_cases.get_test_case_test_steps(key)

    test_case.pop("testScript", None)
    test_case["testSteps"] = steps["values"]
    return test_case


def _list_projects(services: Services, args: dict) -> dict:
    result = services.projects.list_projects(_query(args))
    if not isinstance(result, dict) or not isinstance(result.get("values"), list):
        raise InternalError(
            "Received unexpected structure from list_projects",
            {"receivedData": result},
        )
    return result


def _delete_link(services: Services, args: dict) -> str:
    services.links.delete_link(args["linkId"])
    return "Link deleted successfully."


def _update_test_execution_test_steps(services: Services, args: dict) -> str:
    services.test_executions.update_test_execution_test_steps(
        args["testExecutionIdOrKey"],
        {"mode": args.get("mode", "OVERWRITE"), "testSteps": args["testSteps"]},
    )
    return "Test execution steps updated successfully."


# ============================================================================
# TOOL CATALOG
# ============================================================================

TOOLS = [
    # ----- Test cases -------------------------------------------------------
    ToolSpec(
        "get_test_case",
        "Get a specific test case by its key, including all of its test steps.",
        _schema({"testCaseKey": _string("The key of the test case (e.g., PROJ-T123)")},
                required=["testCaseKey"]),
        _get_test_case,
    ),
    ToolSpec(
        "list_test_cases",
        "List test cases with optional filtering by project, folder, or Jira issue.",
        _schema({
            "projectKey": _string("Key of the project (e.g., PROJ)"),
            "folderId": _number("Numeric ID of the folder"),
            "jiraIssueKey": _string("Key of the linked Jira issue (e.g., PROJ-456)"),
            **PAGINATION,
        }, additional=True),
        lambda services, args: services.test_cases.list_test_cases(_query(args)),
    ),
    ToolSpec(
        "create_test_case",
        "Create a new test case.",
        _schema({
            "name": _string("Name of the test case"),
            "projectKey": _string("Key of the project"),
            "folderId": _number(),
            "statusId": _number(),
            "priorityId": _number(),
            "ownerId": _string("Owner account ID"),
            "jiraIssueKey": _string(),
            "links": LINKS,
            "parameters": {"type": "object"},
            "testScript": {"type": "object"},
            "testSteps": {"type": "object"},
        }, required=["name", "projectKey"], additional=True),
        lambda services, args: services.test_cases.create_test_case(args),
    ),
    ToolSpec(
        "update_test_case",
        "Update an existing test case. Only the provided fields change.",
        _schema({
            "testCaseKey": _string("The key of the test case (e.g., PROJ-T123)"),
            "name": _string(),
            "folderId": _number(),
            "statusId": _number(),
            "priorityId": _number(),
            "ownerId": _string("Owner account ID"),
            "parameters": {
                "type": "object",
                "description": "Fields to change: objective, precondition, estimatedTime, labels, customFields",
            },
        }, required=["testCaseKey"], minProperties=2),
        lambda services, args: services.test_cases.update_test_case(
            args["testCaseKey"], _without(args, "testCaseKey")
        ),
    ),
    ToolSpec(
        "get_test_case_links",
        "Get links associated with a test case.",
        _schema({"testCaseKey": _string()}, required=["testCaseKey"]),
        lambda services, args: services.test_cases.get_test_case_links(args["testCaseKey"]),
    ),
    ToolSpec(
        "create_test_case_issue_link",
        "Create an issue link for a test case.",
        _schema({"testCaseKey": _string(), "issueKey": _string()},
                required=["testCaseKey", "issueKey"]),
        lambda services, args: services.test_cases.create_test_case_issue_link(
            args["testCaseKey"], args["issueKey"]
        ),
    ),
    ToolSpec(
        "create_test_case_web_link",
        "Create a web link for a test case.",
        _schema({"testCaseKey": _string(), "url": _string(), "description": _string()},
                required=["testCaseKey", "url"]),
        lambda services, args: services.test_cases.create_test_case_web_link(
            args["testCaseKey"], args["url"], args.get("description")
        ),
    ),
    ToolSpec(
        "get_test_case_test_script",
        "Get the test script for a test case.",
        _schema({"testCaseKey": _string()}, required=["testCaseKey"]),
        lambda services, args: services.test_cases.get_test_case_test_script(args["testCaseKey"]),
    ),
    ToolSpec(
        "create_test_case_test_script",
        "Create or update the test script for a test case.",
        _schema({
            "testCaseKey": _string(),
            "type": _string(enum=TEST_SCRIPT_TYPES),
            "text": _string(),
            "steps": {"type": "array", "items": {"type": "object"}},
        }, required=["testCaseKey", "type"], additional=True),
        lambda services, args: services.test_cases.create_test_case_test_script(
            args["testCaseKey"], _without(args, "testCaseKey")
        ),
    ),
    ToolSpec(
        "get_test_case_test_steps",
        "Get all test steps for a test case.",
        _schema({"testCaseKey": _string()}, required=["testCaseKey"]),
        lambda services, args: services.test_cases.get_test_case_test_steps(args["testCaseKey"]),
    ),
    ToolSpec(
        "create_test_case_test_steps",
        "Create or update test steps for a test case. Each step is a simple object with "
        "description, testData, and expectedResult properties (NOT wrapped in an 'inline' object).",
        _schema({"testCaseKey": _string(), "steps": FLAT_STEPS, "mode": STEPS_MODE},
                required=["testCaseKey", "steps"]),
        lambda services, args: services.test_cases.create_test_case_test_steps(
            args["testCaseKey"], args["steps"], args.get("mode")
        ),
    ),
    ToolSpec(
        "update_test_case_test_steps",
        "Update test steps for a test case with the specified mode. Each step is a simple object "
        "with description, testData, and expectedResult properties (NOT wrapped in an 'inline' object).",
        _schema({"testCaseKey": _string(), "steps": FLAT_STEPS, "mode": STEPS_MODE},
                required=["testCaseKey", "steps"]),
        lambda services, args: services.test_cases.create_test_case_test_steps(
            args["testCaseKey"], args["steps"], args.get("mode")
        ),
    ),

    # ----- Test cycles ------------------------------------------------------
    ToolSpec(
        "get_test_cycle",
        "Get a specific test cycle by its ID or key.",
        _schema({"testCycleIdOrKey": _string()}, required=["testCycleIdOrKey"]),
        lambda services, args: services.test_cycles.get_test_cycle(args["testCycleIdOrKey"]),
    ),
    ToolSpec(
        "list_test_cycles",
        "List test cycles with optional filtering.",
        _schema({
            "projectKey": _string(),
            "folderId": _number(),
            "jiraIssueKey": _string(),
            **PAGINATION,
        }, additional=True),
        lambda services, args: services.test_cycles.list_test_cycles(_query(args)),
    ),
    ToolSpec(
        "create_test_cycle",
        "Create a new test cycle.",
        _schema({
            "name": _string(),
            "projectKey": _string(),
            "folderId": _number(),
            "statusId": _number(),
            "ownerId": _string("Owner account ID"),
            "startDate": _string(format="date-time"),
            "endDate": _string(format="date-time"),
            "jiraIssueKey": _string(),
            "links": LINKS,
        }, required=["name", "projectKey"], additional=True),
        lambda services, args: services.test_cycles.create_test_cycle(args),
    ),
    ToolSpec(
        "update_test_cycle",
        "Update an existing test cycle.",
        _schema({
            "testCycleIdOrKey": _string(),
            "name": _string(),
            "folderId": _number(),
            "statusId": _number(),
            "ownerId": _string("Owner account ID"),
            "startDate": _string(format="date-time"),
            "endDate": _string(format="date-time"),
            "jiraIssueKey": _string(),
            "links": LINKS,
        }, required=["testCycleIdOrKey"], additional=True),
        lambda services, args: services.test_cycles.update_test_cycle(
            args["testCycleIdOrKey"], _without(args, "testCycleIdOrKey")
        ),
    ),

    # ----- Test executions --------------------------------------------------
    ToolSpec(
        "get_test_execution",
        "Get a specific test execution by its ID or key.",
        _schema({"testExecutionIdOrKey": _string()}, required=["testExecutionIdOrKey"]),
        lambda services, args: services.test_executions.get_test_execution(args["testExecutionIdOrKey"]),
    ),
    ToolSpec(
        "list_test_executions",
        "List test executions with optional filtering.",
        _schema({
            "projectKey": _string(),
            "testCaseKey": _string(),
            "testCycleKey": _string(),
            "statusId": _number(),
            "environmentId": _number(),
            "ownerId": _string("Owner account ID"),
            "jiraIssueKey": _string(),
            **PAGINATION,
        }, additional=True),
        lambda services, args: services.test_executions.list_test_executions(_query(args)),
    ),
    ToolSpec(
        "create_test_execution",
        "Create a new test execution.",
        _schema({
            "projectKey": _string(),
            "testCaseKey": _string(),
            "testCycleKey": _string(),
            "statusId": _number(),
            "environmentId": _number(),
            "ownerId": _string("Owner account ID"),
            "executedDate": _string(format="date-time"),
            "jiraIssueKey": _string(),
            "links": LINKS,
            "testSteps": {"type": "object"},
        }, required=["projectKey", "testCaseKey"], additional=True),
        lambda services, args: services.test_executions.create_test_execution(args),
    ),
    ToolSpec(
        "update_test_execution",
        "Update an existing test execution.",
        _schema({
            "testExecutionIdOrKey": _string(),
            "statusId": _number(),
            "environmentId": _number(),
            "ownerId": _string("Owner account ID"),
            "executedDate": _string(format="date-time"),
            "jiraIssueKey": _string(),
            "links": LINKS,
            "testSteps": {"type": "object"},
        }, required=["testExecutionIdOrKey"], additional=True),
        lambda services, args: services.test_executions.update_test_execution(
            args["testExecutionIdOrKey"], _without(args, "testExecutionIdOrKey")
        ),
    ),
    ToolSpec(
        "get_test_execution_test_steps",
        "Get all test steps for a test execution.",
        _schema({"testExecutionIdOrKey": _string()}, required=["testExecutionIdOrKey"]),
        lambda services, args: services.test_executions.get_test_execution_test_steps(
            args["testExecutionIdOrKey"]
        ),
    ),
    ToolSpec(
        "update_test_execution_test_steps",
        "Update test steps for a test execution (status and actual result per step).",
        _schema({
            "testExecutionIdOrKey": _string(),
            "testSteps": {
                "type": "array",
                "description": "Step updates in order: {statusId?, actualResult?}",
                "items": {
                    "type": "object",
                    "properties": {"statusId": _number(), "actualResult": _string()},
                },
            },
            "mode": STEPS_MODE,
        }, required=["testExecutionIdOrKey", "testSteps"]),
        _update_test_execution_test_steps,
    ),

    # ----- Projects ---------------------------------------------------------
    ToolSpec(
        "get_project",
        "Get a specific project by its ID or key.",
        _schema({"projectIdOrKey": _string()}, required=["projectIdOrKey"]),
        lambda services, args: services.projects.get_project(args["projectIdOrKey"]),
    ),
    ToolSpec(
        "list_projects",
        "List projects.",
        _schema(dict(PAGINATION), additional=True),
        _list_projects,
    ),

    # ----- Folders ----------------------------------------------------------
    ToolSpec(
        "get_folder",
        "Get a specific folder by its ID.",
        _schema({"folderId": _number()}, required=["folderId"]),
        lambda services, args: services.folders.get_folder(args["folderId"]),
    ),
    ToolSpec(
        "list_folders",
        "List folders with optional filtering.",
        _schema({
            "projectKey": _string(),
            "type": _string(enum=FOLDER_TYPES),
            **PAGINATION,
        }, additional=True),
        lambda services, args: services.folders.list_folders(_query(args)),
    ),
    ToolSpec(
        "create_folder",
        "Create a new folder.",
        _schema({
            "name": _string(),
            "type": _string(enum=FOLDER_TYPES),
            "projectKey": _string(),
            "description": _string(),
            "parentFolderId": _number(),
        }, required=["name", "type", "projectKey"], additional=True),
        lambda services, args: services.folders.create_folder(args),
    ),

    # ----- Reference data ---------------------------------------------------
    ToolSpec(
        "list_statuses",
        "List statuses with optional filtering.",
        _schema({
            "type": _string(enum=STATUS_TYPES),
            "projectKey": _string(),
            **PAGINATION,
        }, additional=True),
        lambda services, args: services.statuses.list_statuses(_query(args)),
    ),
    ToolSpec(
        "list_priorities",
        "List priorities.",
        _schema(dict(PAGINATION), additional=True),
        lambda services, args: services.priorities.list_priorities(_query(args)),
    ),
    ToolSpec(
        "list_environments",
        "List environments.",
        _schema(dict(PAGINATION), additional=True),
        lambda services, args: services.environments.list_environments(_query(args)),
    ),

    # ----- Links ------------------------------------------------------------
    ToolSpec(
        "delete_link",
        "Delete a link by its ID.",
        _schema({"linkId": _number()}, required=["linkId"]),
        _delete_link,
    ),
]

TOOLS_BY_NAME = {tool.name: tool for tool in TOOLS}


# ============================================================================
# DISPATCH
# ============================================================================

class ToolDispatcher:
    """
    Routes tool calls to the resource services.

    Args:
        client: Executor shared by all services (a ZephyrClient in production)
    """

    def __init__(self, client):
        self.client = client
        self.services = Services.from_client(client)

    @classmethod
    def from_settings(cls, settings) -> "ToolDispatcher":
        return cls(ZephyrClient(settings.api_key, settings.base_url, timeout=settings.timeout))

    def call(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        """
        Validate and execute one tool invocation.

        Args:
            name: Tool name from the catalog
            arguments: Raw arguments from the MCP host

        Returns:
            The tool result (JSON-serializable data or a confirmation message)

        Raises:
            MethodNotFoundError: Unknown tool name
            ToolValidationError: Arguments do not match the tool's schema
            ZephyrError: Classified failure from the API call, propagated as-is
            InternalError: Any other exception, with the original message
        """
        tool = TOOLS_BY_NAME.get(name)
        if tool is None:
            raise MethodNotFoundError(f"Tool '{name}' not found", {"tool": name})

        try:
            args = validate_arguments(name, tool.input_schema, arguments)
            logger.info(f"Executing tool '{name}'")
            return tool.handler(self.services, args)
        except ZephyrError as e:
            logger.error(f"Tool '{name}' failed with {e.kind}: {e.message}")
            raise
        except Exception as e:
            logger.critical(
                f"Unexpected error executing tool '{name}' with args {arguments}: "
                f"{type(e).__name__}: {e}",
                exc_info=True,
            )
            raise InternalError(
                str(e) or f"Failed to execute tool '{name}'",
                {"originalError": repr(e), "tool": name},
            ) from e
