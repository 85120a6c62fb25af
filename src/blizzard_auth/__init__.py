"""Battle.net (Blizzard) OAuth2 authentication strategy.

## Key Components

- `BlizzardOAuth`: OAuth2 client for Battle.net (authorize URL, token exchange,
  authenticated API requests, region host resolution)
- `BlizzardStrategy`: request/callback/cleanup phases and the accessors that
  produce the canonical `Auth` record
- `Conn`: request-scoped state shared between the host and the strategy
- `load_config()`, `config_from_env()`: provider configuration loading

## Quick Example

```python
from starlette.requests import Request

from blizzard_auth import BlizzardStrategy, config_from_env

config = config_from_env()
strategy = BlizzardStrategy(config, uid_field="battletag")

async def login(request: Request):
    conn = strategy.conn_for(request)
    return strategy.run_request(conn).response

async def callback(request: Request):
    conn = strategy.conn_for(request)
    result = await strategy.run_callback(conn)
    ...
```
"""

from .config import config_from_env, load_config
from .conn import Conn
from .contracts import (
    AuthStrategy,
    InvalidRegion,
    MissingCode,
    MissingProfileField,
    ProviderError,
    ProviderTokenError,
    TransportError,
    UnauthorizedToken,
)
from .models import (
    REGIONS,
    Auth,
    BlizzardAuthConfigModel,
    Credentials,
    Extra,
    Failure,
    HttpTransportConfigModel,
    Info,
    OAuthResponse,
    StrategyError,
    Token,
)
from .oauth import BlizzardOAuth, ClientConfig, resolve_api_host, resolve_host, validate_region
from .strategy import BlizzardStrategy, Strategy
from .url_utils import URLBuilder

__all__ = [
    # Configuration
    "BlizzardAuthConfigModel",
    "HttpTransportConfigModel",
    "REGIONS",
    "config_from_env",
    "load_config",
    # OAuth client
    "BlizzardOAuth",
    "ClientConfig",
    "OAuthResponse",
    "Token",
    "resolve_api_host",
    "resolve_host",
    "validate_region",
    # Strategy
    "AuthStrategy",
    "BlizzardStrategy",
    "Conn",
    "Strategy",
    "URLBuilder",
    # Auth record
    "Auth",
    "Credentials",
    "Extra",
    "Failure",
    "Info",
    "StrategyError",
    # Errors
    "InvalidRegion",
    "MissingCode",
    "MissingProfileField",
    "ProviderError",
    "ProviderTokenError",
    "TransportError",
    "UnauthorizedToken",
]
