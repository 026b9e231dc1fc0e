# =============== MIDDLEWARE FOR BUSINESS UNIT CONTEXT ===============
from rest_framework.exceptions import ValidationError

from inventory.models import BusinessUnit


class BusinessUnitMiddleware:
    """
    Middleware to add the active business unit to requests.

    Each console (restaurant, bar, lodging, billiards) sends its unit either
    as an ``X-Business-Unit`` header, a ``unit`` query parameter, or a
    ``unit`` URL kwarg. Unknown values resolve to ``None``.
    """
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        unit = request.META.get('HTTP_X_BUSINESS_UNIT')

        if not unit:
            unit = request.GET.get('unit')

        request.business_unit = self.normalize(unit)

        response = self.get_response(request)
        return response

    def process_view(self, request, view_func, view_args, view_kwargs):
        if view_kwargs.get('unit'):
            request.business_unit = self.normalize(view_kwargs['unit'])
        return None

    @staticmethod
    def normalize(unit):
        if not unit:
            return None
        unit = unit.strip().upper()
        if unit in BusinessUnit.values:
            return unit
        return None


def require_business_unit(request):
    """The request's business unit, or a 400 when it is missing or unknown."""
    unit = getattr(request, 'business_unit', None)
    if unit is None:
        raise ValidationError({'unit': f"Choose a business unit: {', '.join(BusinessUnit.values)}."})
    return unit
