import uuid

from .models import PricingPackage


def get_package(package_id):
    """Return the package for ``package_id`` or ``None`` (malformed ids included)."""
    try:
        pk = uuid.UUID(str(package_id))
    except (TypeError, ValueError):
        return None
    return PricingPackage.objects.filter(pk=pk).first()
