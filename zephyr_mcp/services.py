"""
Zephyr Scale resource services.

Each service wraps one family of endpoints. Services do not subclass a common
base; they are handed a ZephyrClient and route every call through its
execute() method, so request building and error classification live in one
place.
"""

import logging
from typing import Any, Dict, List, Optional

from .errors import NotFoundError, ToolValidationError
from .steps import build_steps_payload, fetch_all_steps

logger = logging.getLogger(__name__)


# ============================================================================
# TEST CASES
# ============================================================================

class TestCaseService:
    """Test cases, their links, test scripts and test steps."""

    # Keeps pytest from collecting this class as a test
    __test__ = False

    def __init__(self, client):
        self.client = client

    def get_test_case(self, test_case_key: str) -> dict:
        return self.client.execute("GET", f"testcases/{test_case_key}")

    def list_test_cases(self, params: Optional[Dict[str, Any]] = None) -> dict:
        return self.client.execute("GET", "testcases", None, params)

    def create_test_case(self, test_case_input: dict) -> dict:
        return self.client.execute("POST", "testcases", test_case_input)

    def update_test_case(self, test_case_key: str, updates: dict) -> dict:
        """
        Update a test case. Only the fields that are provided change.

        The API requires the complete test case document on PUT, so the
        current test case is fetched first and the updates are merged into it.
        There is no version check: a concurrent writer between the read and the
        write is silently overwritten.

        Args:
            test_case_key: Key of the test case (e.g. PROJ-T123)
            updates: Partial update. Supported fields:
                     name, folderId, statusId, priorityId, ownerId and
                     parameters.{objective, precondition, estimatedTime,
                     labels, customFields}

        Returns:
            dict: The updated test case (re-fetched if the PUT returned no body)

        Raises:
            ToolValidationError: If no fields were provided
            ZephyrError: Whatever the fetch or the PUT raised
        """
        if not updates:
            raise ToolValidationError("No fields provided for update.", {"testCaseKey": test_case_key})

        # Step 1: Fetch existing test case
        logger.info(f"Fetching existing test case {test_case_key} before update")
        current = self.get_test_case(test_case_key) or {}

        # Step 2: Merge updates over the current document
        payload = dict(current)
        if updates.get("name") is not None:
            payload["name"] = updates["name"]

        if "folderId" in updates:
            payload["folder"] = {"id": updates["folderId"]} if updates["folderId"] else None
        if "statusId" in updates:
            payload["status"] = {"id": updates["statusId"]}
        if "priorityId" in updates:
            payload["priority"] = {"id": updates["priorityId"]}
        if "ownerId" in updates:
            payload["owner"] = {"accountId": updates["ownerId"]} if updates["ownerId"] else None

        parameters = updates.get("parameters") or {}
        for field in ("objective", "precondition", "estimatedTime", "labels", "customFields"):
            if field in parameters:
                payload[field] = parameters[field]

        logger.debug(f"Prepared update payload for {test_case_key} with {len(payload)} fields")

        # Step 3: Write back the merged document
        logger.info(f"Sending update request for {test_case_key}")
        response = self.client.execute("PUT", f"testcases/{test_case_key}", payload)

        # The API answers an update with an empty body; return the fresh state
        if not response:
            updated = self.get_test_case(test_case_key)
            if not updated:
                raise NotFoundError(
                    f"Failed to retrieve updated test case {test_case_key}",
                    {"testCaseKey": test_case_key},
                )
            return updated

        return response

    def get_test_case_links(self, test_case_key: str) -> Any:
        return self.client.execute("GET", f"testcases/{test_case_key}/links")

    def create_test_case_issue_link(self, test_case_key: str, issue_key: str) -> dict:
        return self.client.execute(
            "POST", f"testcases/{test_case_key}/links/issues", {"issueKey": issue_key}
        )

    def create_test_case_web_link(self, test_case_key: str, url: str,
                                  description: Optional[str] = None) -> dict:
        # Zephyr Scale Cloud v2 WebLinkInput is {url, description}, not {url, name}.
        # The link text defaults to the URL.
        return self.client.execute(
            "POST",
            f"testcases/{test_case_key}/links/weblinks",
            {"url": url, "description": description or url},
        )

    def get_test_case_test_script(self, test_case_key: str) -> dict:
        return self.client.execute("GET", f"testcases/{test_case_key}/testscript")

    def create_test_case_test_script(self, test_case_key: str, test_script_input: dict) -> dict:
        return self.client.execute(
            "POST", f"testcases/{test_case_key}/testscript", test_script_input
        )

    def get_test_case_test_steps(self, test_case_key: str) -> dict:
        """All steps of a test case, across every page."""
        return fetch_all_steps(self.client, f"testcases/{test_case_key}/teststeps")

    def create_test_case_test_steps(self, test_case_key: str, steps: List[dict],
                                    mode: Optional[str] = None) -> Any:
        """
        Create (OVERWRITE) or append (APPEND) test steps.

        Steps are given flat ({description, testData?, expectedResult}) and
        wrapped in the API's inline envelope here.
        """
        return self.client.execute(
            "POST",
            f"testcases/{test_case_key}/teststeps",
            build_steps_payload(steps, mode),
        )


# ============================================================================
# TEST CYCLES
# ============================================================================

class TestCycleService:
    __test__ = False

    def __init__(self, client):
        self.client = client

    def get_test_cycle(self, test_cycle_id_or_key: str) -> dict:
        return self.client.execute("GET", f"testcycles/{test_cycle_id_or_key}")

    def list_test_cycles(self, params: Optional[Dict[str, Any]] = None) -> dict:
        return self.client.execute("GET", "testcycles", None, params)

    def create_test_cycle(self, test_cycle_input: dict) -> dict:
        return self.client.execute("POST", "testcycles", test_cycle_input)

    def update_test_cycle(self, test_cycle_id_or_key: str, test_cycle_input: dict) -> Any:
        return self.client.execute("PUT", f"testcycles/{test_cycle_id_or_key}", test_cycle_input)


# ============================================================================
# TEST EXECUTIONS
# ============================================================================

class TestExecutionService:
    __test__ = False

    def __init__(self, client):
        self.client = client

    def get_test_execution(self, test_execution_id_or_key: str) -> dict:
        return self.client.execute("GET", f"testexecutions/{test_execution_id_or_key}")

    def list_test_executions(self, params: Optional[Dict[str, Any]] = None) -> dict:
        return self.client.execute("GET", "testexecutions", None, params)

    def create_test_execution(self, test_execution_input: dict) -> Any:
        return self.client.execute("POST", "testexecutions", test_execution_input)

    def update_test_execution(self, test_execution_id_or_key: str, update: dict) -> Any:
        return self.client.execute("PUT", f"testexecutions/{test_execution_id_or_key}", update)

    def get_test_execution_test_steps(self, test_execution_id_or_key: str) -> dict:
        """All steps of a test execution, across every page."""
        return fetch_all_steps(self.client, f"testexecutions/{test_execution_id_or_key}/teststeps")

    def update_test_execution_test_steps(self, test_execution_id_or_key: str, steps_update: dict) -> Any:
        return self.client.execute(
            "PUT", f"testexecutions/{test_execution_id_or_key}/teststeps", steps_update
        )


# ============================================================================
# PROJECTS, FOLDERS AND REFERENCE DATA
# ============================================================================

class ProjectService:
    def __init__(self, client):
        self.client = client

    def get_project(self, project_id_or_key: str) -> dict:
        return self.client.execute("GET", f"projects/{project_id_or_key}")

    def list_projects(self, params: Optional[Dict[str, Any]] = None) -> dict:
        return self.client.execute("GET", "projects", None, params)


class FolderService:
    def __init__(self, client):
        self.client = client

    def get_folder(self, folder_id: int) -> dict:
        return self.client.execute("GET", f"folders/{folder_id}")

    def list_folders(self, params: Optional[Dict[str, Any]] = None) -> dict:
        return self.client.execute("GET", "folders", None, params)

    def create_folder(self, folder_input: dict) -> dict:
        return self.client.execute("POST", "folders", folder_input)


class StatusService:
    def __init__(self, client):
        self.client = client

    def list_statuses(self, params: Optional[Dict[str, Any]] = None) -> dict:
        return self.client.execute("GET", "statuses", None, params)


class PriorityService:
    def __init__(self, client):
        self.client = client

    def list_priorities(self, params: Optional[Dict[str, Any]] = None) -> dict:
        return self.client.execute("GET", "priorities", None, params)


class EnvironmentService:
    def __init__(self, client):
        self.client = client

    def list_environments(self, params: Optional[Dict[str, Any]] = None) -> dict:
        return self.client.execute("GET", "environments", None, params)


class LinkService:
    def __init__(self, client):
        self.client = client

    def delete_link(self, link_id: int) -> None:
        self.client.execute("DELETE", f"links/{link_id}")
