"""設定読み込みのテスト"""

from godot_shot.config import ScreenshotConfig
from godot_shot.context import BridgeContext


class TestScreenshotConfig:
    def test_defaults(self):
        config = ScreenshotConfig.from_env({})
        assert config.quality == 85
        assert config.image_format == "png"
        assert config.temp_dir is None
        assert config.use_nircmd is False
        assert config.bridge_retries == 0

    def test_reads_environment(self):
        config = ScreenshotConfig.from_env({
            "SCREENSHOT_QUALITY": "70",
            "SCREENSHOT_FORMAT": "JPEG",
            "TEMP_DIR": "/mnt/c/Temp",
            "USE_NIRCMD": "TRUE",
            "BRIDGE_RETRIES": "2",
            "MCP_LOG_LEVEL": "debug",
            "MCP_API_PORT": "9000",
        })
        assert config.quality == 70
        assert config.image_format == "jpg"
        assert config.temp_dir == "/mnt/c/Temp"
        assert config.use_nircmd is True
        assert config.bridge_retries == 2
        assert config.log_level == "DEBUG"
        assert config.api_port == 9000

    def test_invalid_values_fall_back(self):
        config = ScreenshotConfig.from_env({
            "SCREENSHOT_QUALITY": "high",
            "SCREENSHOT_FORMAT": "bmp",
            "USE_NIRCMD": "yes",
            "BRIDGE_RETRIES": "-1",
            "TEMP_DIR": "  ",
        })
        assert config.quality == 85
        assert config.image_format == "png"
        assert config.use_nircmd is False
        assert config.bridge_retries == 0
        assert config.temp_dir is None


class TestBridgeContext:
    def test_path_translation_only_under_wsl(self):
        wsl = BridgeContext(wsl=True)
        native = BridgeContext(wsl=False)

        assert wsl.host_path("/mnt/c/Temp/a.png") == "C:\\Temp\\a.png"
        assert native.host_path("/mnt/c/Temp/a.png") == "/mnt/c/Temp/a.png"
        assert wsl.caller_path("C:\\Temp") == "/mnt/c/Temp"

    def test_close_clears_caches(self, context):
        context.bridge_available = True
        context.temp_dir = "/tmp"
        context.window_cache[None] = object()

        context.close()

        assert context.bridge_available is None
        assert context.temp_dir is None
        assert context.window_cache == {}
