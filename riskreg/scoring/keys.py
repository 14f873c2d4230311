"""Score input hashing.

Convention: score:{row_id}:{inputs_hash}

Only the values the aggregator reads take part in the hash, so renaming a
control or editing its comment leaves the key unchanged.
"""

import hashlib
from typing import Mapping, Optional, Sequence

import orjson

from riskreg.domain.models import Control, ControlLink, Row


def inputs_hash(
    row: Row,
    row_links: Sequence[ControlLink] = (),
    controls_by_id: Optional[Mapping[str, Control]] = None,
) -> str:
    """Deterministic digest of everything that feeds a row's net score.

    Returns:
        16 hex characters of a sha256 over the sorted, orjson-encoded inputs.
    """
    controls_by_id = controls_by_id or {}
    linked = []
    for link in sorted(row_links, key=lambda l: l.id):
        control = controls_by_id.get(link.control_id)
        linked.append(
            {
                "id": link.id,
                "control": link.control_id,
                "p": link.net_probability,
                "i": link.net_impact,
                "cp": control.net_probability if control else None,
                "ci": control.net_impact if control else None,
            }
        )

    key_data = orjson.dumps(
        {
            "gross": [row.gross_probability, row.gross_impact],
            "embedded": [[c.id, c.net_probability, c.net_impact] for c in row.controls],
            "links": linked,
        },
        option=orjson.OPT_SORT_KEYS,
    )
    return hashlib.sha256(key_data).hexdigest()[:16]


def score_key(row_id: str, digest: str) -> str:
    return f"score:{row_id}:{digest}"
