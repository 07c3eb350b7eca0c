import pytest

from replyflow.billing.config import BillingConfig


def test_defaults_to_sandbox(billing_env):
    config = BillingConfig.from_env(billing_env)

    assert config.provider == "asaas"
    assert config.asaas_env == "sandbox"
    assert config.asaas_base_url == "https://api-sandbox.asaas.com/v3"
    assert config.asaas_checkout_base_url == "https://sandbox.asaas.com"
    assert config.pro_monthly_cents == 3900
    assert config.grace_days == 3


def test_production_urls_and_overrides(billing_env):
    billing_env.update(
        {
            "ASAAS_ENV": "production",
            "PLAN_PRO_MONTHLY_BRL_CENTS": "4990",
            "BILLING_GRACE_DAYS": "0",
            "ASAAS_CHECKOUT_BASE_URL": "https://checkout.example.com/",
        }
    )

    config = BillingConfig.from_env(billing_env)

    assert config.asaas_base_url == "https://api.asaas.com/v3"
    assert config.asaas_checkout_base_url == "https://checkout.example.com"
    assert config.pro_monthly_cents == 4990
    assert config.grace_days == 0


@pytest.mark.parametrize(
    "name",
    ["ASAAS_API_KEY", "ASAAS_WEBHOOK_TOKEN", "ASAAS_SUCCESS_URL", "ASAAS_CANCEL_URL", "BILLING_RECONCILE_TOKEN"],
)
def test_missing_required_variable(billing_env, name):
    del billing_env[name]

    with pytest.raises(ValueError, match=name):
        BillingConfig.from_env(billing_env)


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"BILLING_RECONCILE_TOKEN": "short"}, "at least 16 characters"),
        ({"BILLING_GRACE_DAYS": "15"}, "between 0 and 14"),
        ({"BILLING_GRACE_DAYS": "three"}, "must be an integer"),
        ({"PLAN_PRO_MONTHLY_BRL_CENTS": "0"}, "must be positive"),
        ({"ASAAS_ENV": "staging"}, "sandbox' or 'production"),
        ({"ASAAS_SUCCESS_URL": "not a url"}, "ASAAS_SUCCESS_URL must be a valid URL"),
        ({"BILLING_PROVIDER": "stripe"}, "Unsupported BILLING_PROVIDER"),
    ],
)
def test_invalid_values(billing_env, overrides, message):
    billing_env.update(overrides)

    with pytest.raises(ValueError, match=message):
        BillingConfig.from_env(billing_env)
