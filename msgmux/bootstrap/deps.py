import json
from functools import lru_cache

from pydantic import ValidationError

from msgmux.bootstrap.config.settings import MuxSettings
from msgmux.core.helpers.utils import setup_logging
from msgmux.core.routing.mux import DispatchMux


@lru_cache
def get_settings() -> MuxSettings:
    try:
        return MuxSettings()
    except ValidationError as ex:
        msg = ["Configuration validation failed:"]
        errs = json.loads(ex.json())
        for err in errs:
            msg.append(f"  {'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}")
        raise SystemExit("\n".join(msg))


def configure_mux(settings: MuxSettings | None = None) -> DispatchMux:
    settings = settings or get_settings()
    setup_logging(settings.log_level)
    return DispatchMux(empty_registry=settings.empty_registry)
