# commons/pagination.py

from rest_framework.pagination import PageNumberPagination


class PaginacaoPadrao(PageNumberPagination):
    page_size_query_param = "page_size"
    max_page_size = 200
