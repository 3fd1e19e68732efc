from django.test import RequestFactory, SimpleTestCase, override_settings

from agencysite.views import error_500_view


@override_settings(DEBUG=False)
class ErrorHandlerTests(SimpleTestCase):
    def test_custom_404_is_json(self):
        response = self.client.get('/this-url-does-not-exist/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Not found"})

    def test_500_hides_details(self):
        response = error_500_view(RequestFactory().get('/'))
        self.assertEqual(response.status_code, 500)
        self.assertJSONEqual(response.content, {"error": "Internal server error"})
