from django.http import HttpResponse
from django.test import RequestFactory, SimpleTestCase, override_settings

from agencysite.middleware import ClientAddressMiddleware, client_address


class ClientAddressTests(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()

    def test_forwarding_headers_ignored_without_trusted_proxy(self):
        request = self.factory.get(
            '/', REMOTE_ADDR="192.0.2.1", HTTP_X_FORWARDED_FOR="203.0.113.7", HTTP_X_REAL_IP="10.0.0.9"
        )
        self.assertEqual(client_address(request), "192.0.2.1")

    @override_settings(TRUSTED_PROXY_COUNT=1)
    def test_hop_appended_by_trusted_proxy_wins(self):
        request = self.factory.get('/', REMOTE_ADDR="10.0.0.2", HTTP_X_FORWARDED_FOR="6.6.6.6, 203.0.113.7")
        self.assertEqual(client_address(request), "203.0.113.7")

    @override_settings(TRUSTED_PROXY_COUNT=2)
    def test_two_proxies(self):
        request = self.factory.get(
            '/', REMOTE_ADDR="10.0.0.3", HTTP_X_FORWARDED_FOR="6.6.6.6, 203.0.113.7, 10.0.0.2"
        )
        self.assertEqual(client_address(request), "203.0.113.7")

    @override_settings(TRUSTED_PROXY_COUNT=1)
    def test_real_ip_then_remote_addr_when_header_short(self):
        self.assertEqual(
            client_address(self.factory.get('/', REMOTE_ADDR="10.0.0.2", HTTP_X_REAL_IP="198.51.100.4")),
            "198.51.100.4",
        )
        self.assertEqual(client_address(self.factory.get('/', REMOTE_ADDR="10.0.0.2")), "10.0.0.2")

    def test_unknown_when_nothing_available(self):
        request = self.factory.get('/')
        request.META.pop("REMOTE_ADDR", None)
        self.assertEqual(client_address(request), "unknown")

    def test_middleware_sets_client_ip(self):
        seen = {}

        def view(request):
            seen["ip"] = request.client_ip
            return HttpResponse()

        ClientAddressMiddleware(view)(self.factory.get('/', REMOTE_ADDR="192.0.2.8"))
        self.assertEqual(seen["ip"], "192.0.2.8")
