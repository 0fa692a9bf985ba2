"""Shared pagination classes for list endpoints."""

from rest_framework.pagination import PageNumberPagination


class StandardResultsSetPagination(PageNumberPagination):
    """Page-number pagination, 10 per page by default, ``?per_page=`` up to 100."""

    page_size = 10
    page_size_query_param = "per_page"
    max_page_size = 100
