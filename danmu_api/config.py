import yaml
from pathlib import Path
from typing import Any, Dict, List, Tuple, Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

# 1. 为配置的不同部分创建 Pydantic 模型，提供类型提示和默认值
class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 7768

class ApiConfig(BaseModel):
    # 整个请求（包括所有分段）的超时时间，单位秒
    request_timeout: float = 60.0

class HttpConfig(BaseModel):
    # 单个 HTTP 请求的传输层超时时间，单位秒
    timeout: float = 20.0
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"

class LogConfig(BaseModel):
    level: str = "INFO"
    # /api/logs 能看到的最近日志条数
    recent_lines: int = 200
    file_max_bytes: int = 5 * 1024 * 1024
    file_backup_count: int = 5
    # 每个分段一条请求日志，不进入 /api/logs
    muted_loggers: List[str] = ["httpx", "httpcore"]

class BilibiliConfig(BaseModel):
    # 由调用方提供的 Cookie，留空时使用内置的默认值
    cookie: Optional[str] = None

# 2. 创建一个自定义的配置源，用于从 YAML 文件加载设置
class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    def __init__(self, settings_cls: type[BaseSettings]):
        super().__init__(settings_cls)
        # 在项目根目录的 config/ 文件夹下查找 config.yml
        self.yaml_file = Path(__file__).parent.parent / "config" / "config.yml"

    def get_field_value(self, field, field_name):
        return None, None, False

    def __call__(self) -> Dict[str, Any]:
        if not self.yaml_file.is_file():
            return {}
        with open(self.yaml_file, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}


# 3. 定义主设置类，它将聚合所有配置
class Settings(BaseSettings):
    server: ServerConfig = ServerConfig()
    api: ApiConfig = ApiConfig()
    http: HttpConfig = HttpConfig()
    log: LogConfig = LogConfig()
    bilibili: BilibiliConfig = BilibiliConfig()

    class Config:
        # 例如，在容器中设置环境变量 DANMUAPI_BILIBILI__COOKIE=...
        env_prefix = "DANMUAPI_"
        case_sensitive = False
        env_nested_delimiter = '__'

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # 优先级: 环境变量 > .env 文件 > YAML 文件 > 文件密钥 > 默认值
        return (
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
            init_settings,
        )


settings = Settings()
