from decimal import Decimal

from django.test import SimpleTestCase, TestCase

from .models import PricingPackage
from .services import get_package


class ExpectedPriceTests(SimpleTestCase):
    def test_discount_applied(self):
        pkg = PricingPackage(name="Business", price=Decimal("1000000"), discount_percentage=Decimal("20"))
        self.assertEqual(pkg.expected_price(), 800000)

    def test_no_discount(self):
        pkg = PricingPackage(name="Starter", price=Decimal("499000"), discount_percentage=None)
        self.assertEqual(pkg.expected_price(), 499000)

    def test_rounds_half_up_to_whole_unit(self):
        pkg = PricingPackage(name="Odd", price=Decimal("999999"), discount_percentage=Decimal("12.5"))
        # 999999 * 0.875 = 874999.125
        self.assertEqual(pkg.expected_price(), 874999)
        pkg.price = Decimal("1000001")
        pkg.discount_percentage = Decimal("50")
        # 500000.5
        self.assertEqual(pkg.expected_price(), 500001)


class GetPackageTests(TestCase):
    def test_lookup_by_id(self):
        pkg = PricingPackage.objects.create(name="Pro", price=Decimal("2500000"))
        self.assertEqual(get_package(str(pkg.pk)), pkg)

    def test_malformed_or_unknown_id_returns_none(self):
        self.assertIsNone(get_package("not-a-uuid"))
        self.assertIsNone(get_package(None))
        self.assertIsNone(get_package("00000000-0000-0000-0000-000000000000"))
