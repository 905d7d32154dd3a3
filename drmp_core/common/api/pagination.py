from __future__ import annotations

import math

from django.core.paginator import EmptyPage, Paginator
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from drmp_core.common.api.response import ok


class DefaultPagination:
    """
    Page-number pagination producing the PageResult contract:
      { records, total, current, size, pages }

    `current` is 1-based. `page` is accepted as an alias because clients
    written against either convention call these endpoints.
    """
    page_size = 20
    page_query_params = ("current", "page")
    page_size_query_param = "size"
    max_page_size = 200

    def _int_param(self, request, names, default: int) -> int:
        for name in names:
            raw = request.query_params.get(name)
            if raw in (None, ""):
                continue
            try:
                value = int(raw)
            except (TypeError, ValueError):
                raise ValidationError({name: "必须是整数"})
            return value
        return default

    def page_params(self, request) -> tuple[int, int]:
        current = max(self._int_param(request, self.page_query_params, 1), 1)
        size = self._int_param(request, (self.page_size_query_param,), self.page_size)
        size = min(max(size, 1), self.max_page_size)
        return current, size

    def paginate(self, request, queryset) -> tuple[list, dict]:
        current, size = self.page_params(request)
        paginator = Paginator(queryset, size)
        try:
            records = list(paginator.page(current).object_list)
        except EmptyPage:
            records = []
        total = paginator.count
        meta = {
            "total": total,
            "current": current,
            "size": size,
            "pages": math.ceil(total / size) if total else 0,
        }
        return records, meta


def paginate(request, queryset, serializer_class, *, paginator: DefaultPagination | None = None) -> Response:
    """
    Shared pagination helper to enforce a stable contract:
      { records, total, current, size, pages }
    """
    p = paginator or DefaultPagination()
    records, meta = p.paginate(request, queryset)
    ser = serializer_class(records, many=True)
    return ok({"records": ser.data, **meta})
