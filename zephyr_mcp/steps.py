"""
Test step helpers: page normalization, full step aggregation and the
inline envelope used when writing steps.

Step listings are paged on the server. fetch_all_steps() walks every page
sequentially (each offset depends on the previous page) and returns the
complete, ordered list.
"""

import logging
from typing import Any, Dict, List, NamedTuple, Optional

from .errors import ApiError

logger = logging.getLogger(__name__)

STEPS_PAGE_SIZE = 100

# Upper bound on pages for a single listing. An upstream response that never
# reports its last page would otherwise loop forever.
MAX_STEP_PAGES = 1000

STEP_MODES = ("OVERWRITE", "APPEND")


class StepPage(NamedTuple):
    items: List[dict]
    total: Optional[int]
    is_last: Optional[bool]


def normalize_page(response: Any) -> StepPage:
    """
    Map a steps page into one canonical shape.

    The API has returned the step list under 'values' and, historically,
    under 'items'. A missing or non-dict response is treated as an empty page.
    """
    if not isinstance(response, dict):
        return StepPage(items=[], total=None, is_last=None)

    items = response.get("values")
    if items is None:
        items = response.get("items")

    total = response.get("total")
    is_last = response.get("isLast")

    return StepPage(
        items=list(items or []),
        total=total if isinstance(total, int) and not isinstance(total, bool) else None,
        is_last=is_last if isinstance(is_last, bool) else None,
    )


def flatten_step(step: Any) -> Any:
    """
    Unwrap an API step record into the flat shape exposed to tools.

    {"inline": {"description": ..., "expectedResult": ...}, "testCase": None}
    becomes {"description": ..., "expectedResult": ...}. Other top-level keys
    are kept (a non-null 'testCase' call-to-test reference included), so no
    information is lost. Already-flat records are returned unchanged.
    """
    if not isinstance(step, dict) or not isinstance(step.get("inline"), dict):
        return step

    flat = dict(step["inline"])
    for key, value in step.items():
        if key == "inline" or (key == "testCase" and value is None):
            continue
        flat.setdefault(key, value)
    return flat


def wrap_step(step: dict) -> dict:
    """Wrap a flat {description, testData?, expectedResult} step for the API."""
    return {
        "inline": {
            "description": step.get("description"),
            "testData": step.get("testData") or None,
            "expectedResult": step.get("expectedResult"),
            "customFields": {},
            "reflectRef": None,
        },
        "testCase": None,
    }


def build_steps_payload(steps: List[dict], mode: Optional[str] = None) -> dict:
    """Build the request body for creating test case steps."""
    return {
        "mode": mode or "OVERWRITE",
        "items": [wrap_step(step) for step in steps],
    }


def fetch_all_steps(client, path: str, page_size: int = STEPS_PAGE_SIZE,
                    max_pages: int = MAX_STEP_PAGES) -> Dict[str, Any]:
    """
    Fetch every step of a paged steps resource.

    Args:
        client: Executor with an execute(method, path, body, query_params) method
        path: Steps sub-resource, e.g. 'testcases/PROJ-T1/teststeps'
        page_size: Items requested per page (maxResults)
        max_pages: Hard cap on the number of page requests

    Returns:
        dict: {
            'values': [step, ...],   # all steps in server order, flattened
            'total': int,            # len(values), not the server's total
            'startAt': 0,
            'maxResults': int,
            'isLast': True
        }

    Raises:
        ApiError: If the listing does not terminate within max_pages
        ZephyrError: Whatever the executor raised for a failed page
    """
    steps: List[Any] = []
    start_at = 0

    for page_number in range(max_pages):
        response = client.execute(
            "GET", path, None, {"maxResults": page_size, "startAt": start_at}
        )
        page = normalize_page(response)
        steps.extend(flatten_step(step) for step in page.items)

        if page.is_last is not None:
            is_last = page.is_last
        else:
            total = page.total if page.total is not None else len(steps)
            is_last = len(steps) >= total

        # An empty page cannot make progress
        if is_last or not page.items:
            logger.debug(f"Fetched {len(steps)} steps from {path} in {page_number + 1} page(s)")
            return {
                "values": steps,
                "total": len(steps),
                "startAt": 0,
                "maxResults": page_size,
                "isLast": True,
            }

        start_at += page_size

    logger.error(f"Step pagination for {path} did not terminate after {max_pages} pages")
    raise ApiError(
        "Zephyr API Error: step pagination did not terminate",
        {"path": path, "pagesFetched": max_pages, "stepsFetched": len(steps)},
    )
