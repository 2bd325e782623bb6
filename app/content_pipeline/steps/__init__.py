"""
Pipeline Steps - Auto-discovery.

Importa todos os módulos de steps para que os decorators @register_step
registrem automaticamente cada step no StepRegistry, e registra a
topologia de cada tipo de job.
"""

from ..engine.step_registry import register_pipeline

from . import s01_validate
from . import s02_analyze_parent
from . import s03_transcode
from . import s04_thumbnail
from . import s05_fingerprint
from . import s06_pin_ipfs
from . import s07_mint
from . import s08_index

UPLOAD_STEPS = [
    "validate",
    "transcode",
    "thumbnail",
    "fingerprint",
    "pin_ipfs",
    "mint",
    "index",
]

DERIVATIVE_STEPS = [
    "validate",
    "analyze_parent",
    "transcode",
    "thumbnail",
    "fingerprint",
    "pin_ipfs",
    "mint",
    "index",
]

register_pipeline("upload", UPLOAD_STEPS)
register_pipeline("derivative", DERIVATIVE_STEPS)
