"""Read-only query selectors."""

from approval_kernel.selectors.request_selector import RequestSelector

__all__ = ["RequestSelector"]
