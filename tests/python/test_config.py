"""Tests for configuration module."""

import os
import pytest
import sys

# Add python directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../python'))

from compositor_bridge.config import BridgeConfig, get_config, reset_config


class TestBridgeConfig:
    """Test BridgeConfig class."""

    def setup_method(self):
        """Reset config before each test."""
        reset_config()
        # Clear relevant env vars
        for key in list(os.environ.keys()):
            if key.startswith('VCB_') and key != 'VCB_LOG_LEVEL':
                del os.environ[key]

    def test_default_values(self):
        """Test default configuration values."""
        config = BridgeConfig()

        assert config.control_port == 8001
        assert config.framerate == 30
        assert config.stream_fallback_timeout_ms == 1000
        assert config.init_web_renderer is True
        assert config.start_on_init is True
        assert config.input_base_port == 4000
        assert config.output_base_port == 5000
        assert config.startup_max_attempts == 50
        assert config.event_ws_urls == []

    def test_env_var_override(self):
        """Test environment variable overrides."""
        os.environ['VCB_CONTROL_PORT'] = '9001'
        os.environ['VCB_FRAMERATE'] = '60'
        os.environ['VCB_INIT_WEB_RENDERER'] = 'false'
        os.environ['VCB_START_COMPOSING'] = 'on_message'

        config = BridgeConfig()

        assert config.control_port == 9001
        assert config.framerate == 60
        assert config.init_web_renderer is False
        assert config.start_on_init is False
        assert config.control_url == "http://127.0.0.1:9001"

    def test_event_ws_urls_from_env(self):
        """Test WebSocket URL collection from env vars."""
        os.environ['VCB_EVENT_WS_URL'] = 'ws://main.example.com'
        os.environ['VCB_EVENT_WS_URL_1'] = 'ws://backup1.example.com'
        os.environ['VCB_EVENT_WS_URL_2'] = 'ws://backup2.example.com'

        config = BridgeConfig()

        assert len(config.event_ws_urls) == 3
        assert 'ws://main.example.com' in config.event_ws_urls

    def test_odd_base_port_rejected(self):
        with pytest.raises(ValueError):
            BridgeConfig(input_base_port=4001)

    def test_same_base_ports_rejected(self):
        with pytest.raises(ValueError):
            BridgeConfig(input_base_port=4000, output_base_port=4000)

    def test_unknown_start_strategy_rejected(self):
        with pytest.raises(ValueError):
            BridgeConfig(start_composing_strategy="later")

    def test_non_positive_framerate_rejected(self):
        with pytest.raises(ValueError):
            BridgeConfig(framerate=0)

    def test_singleton_get_config(self):
        """Test singleton pattern of get_config."""
        config1 = get_config()
        config2 = get_config()

        assert config1 is config2

    def test_reset_config(self):
        """Test config reset."""
        config1 = get_config()
        reset_config()
        config2 = get_config()

        assert config1 is not config2


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
