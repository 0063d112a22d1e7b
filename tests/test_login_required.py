import pytest
from django.test import Client


@pytest.mark.django_db
def test_anonymous_page_request_redirects_to_login():
    response = Client().get("/reports/")
    assert response.status_code == 302
    assert response["Location"].startswith("/admin/login/?next=/reports/")


@pytest.mark.django_db
def test_health_check_is_exempt():
    response = Client().get("/healthz")
    assert response.status_code == 200


@pytest.mark.django_db
def test_logged_in_users_pass_through(client):
    response = client.get("/reports/")
    assert response.status_code == 404
