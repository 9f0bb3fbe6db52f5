from app import metrics


def test_metrics_requires_admin(client, make_user, auth_headers):
    user = make_user()
    assert client.get("/metrics").status_code == 401
    assert client.get("/metrics", headers=auth_headers(user)).status_code == 403


def test_metrics_exposes_billing_counters(client, make_user, auth_headers):
    from app.models.models import Role

    admin = make_user(role=Role.ADMIN)
    metrics.coupon_rejected("expired")
    metrics.payment_verification(False)
    metrics.sweep_outcome("reminders", "sent", 2)

    resp = client.get("/metrics", headers=auth_headers(admin))

    assert resp.status_code == 200
    text = resp.text
    assert 'coupon_redemptions_total{outcome="expired"}' in text
    assert 'payment_verifications_total{result="rejected"}' in text
    assert "sweep_outcomes_total" in text
    assert "entitlement_denied_total" in text
