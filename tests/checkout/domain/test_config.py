import os
import subprocess
import sys
from decimal import Decimal
from pathlib import Path

import pytest
from checkout.config import CheckoutSettings, GatewaySettings, load_settings
from checkout.gateway import build_gateway
from checkout.gateway.fake_adapter import FakeGateway
from checkout.gateway.sslcommerz_adapter import SSLCommerzGateway
from protean.exceptions import ConfigurationError


class TestLoadSettings:
    def test_defaults_run_against_the_fake_gateway(self):
        settings = load_settings({})

        assert settings.gateway_name == "fake"
        assert settings.gateway.sandbox is True
        assert settings.pricing.commission_rate == Decimal("0.12")
        assert settings.pricing.amount_tolerance == 100

    def test_sslcommerz_requires_a_store_password(self):
        with pytest.raises(ConfigurationError, match="SSL_STORE_PASSWORD"):
            load_settings({"PAANIYO_GATEWAY": "sslcommerz", "SSL_STORE_ID": "paaniyo"})

    def test_sslcommerz_requires_a_store_id(self):
        with pytest.raises(ConfigurationError, match="SSL_STORE_ID"):
            load_settings({"PAANIYO_GATEWAY": "SSLCOMMERZ", "SSL_STORE_PASSWORD": "s3cret"})

    def test_blank_credentials_count_as_missing(self):
        with pytest.raises(ConfigurationError):
            load_settings({"PAANIYO_GATEWAY": "sslcommerz", "SSL_STORE_ID": "paaniyo", "SSL_STORE_PASSWORD": ""})

    def test_sslcommerz_with_credentials(self):
        settings = load_settings(
            {
                "PAANIYO_GATEWAY": "sslcommerz",
                "SSL_STORE_ID": "paaniyo",
                "SSL_STORE_PASSWORD": "s3cret",
                "SSL_IS_SANDBOX": "false",
            }
        )

        assert settings.gateway.store_id == "paaniyo"
        assert settings.gateway.store_password == "s3cret"
        assert settings.gateway.base_url == "https://securepay.sslcommerz.com"


class TestBuildGateway:
    def test_fake_gateway_signs_with_the_configured_password(self):
        gateway = build_gateway(CheckoutSettings())

        assert isinstance(gateway, FakeGateway)
        assert gateway.store_password == "qwerty"

    def test_sslcommerz_gateway(self):
        settings = CheckoutSettings(
            gateway_name="sslcommerz",
            gateway=GatewaySettings(store_id="paaniyo", store_password="s3cret"),
        )

        gateway = build_gateway(settings)
        try:
            assert isinstance(gateway, SSLCommerzGateway)
        finally:
            gateway.close()

    def test_live_sslcommerz_refuses_the_sandbox_password(self):
        settings = CheckoutSettings(
            gateway_name="sslcommerz",
            gateway=GatewaySettings(store_id="paaniyo", sandbox=False),
        )

        with pytest.raises(ConfigurationError):
            build_gateway(settings)

    def test_unknown_gateway(self):
        with pytest.raises(ValueError, match="Unknown payment gateway"):
            build_gateway(CheckoutSettings(gateway_name="bkash"))

    def test_domain_starts_when_the_adapter_module_is_scanned_first(self):
        # Loads the adapter the way the domain's module scan does: registered
        # in sys.modules first, then executed.
        src = Path(__file__).resolve().parents[3] / "src"
        adapter = src / "checkout" / "gateway" / "sslcommerz_adapter.py"
        code = (
            "import importlib.util, sys\n"
            f"path = {str(adapter)!r}\n"
            "spec = importlib.util.spec_from_file_location('checkout.gateway.sslcommerz_adapter', path)\n"
            "module = importlib.util.module_from_spec(spec)\n"
            "sys.modules[spec.name] = module\n"
            "spec.loader.exec_module(module)\n"
            "from checkout.domain import checkout as domain\n"
            "domain.init()\n"
        )
        env = {**os.environ, "PYTHONPATH": os.pathsep.join(filter(None, [str(src), os.environ.get("PYTHONPATH")]))}

        result = subprocess.run([sys.executable, "-c", code], capture_output=True, text=True, env=env, timeout=60)

        assert result.returncode == 0, result.stderr
