"""Export the ArxPool signed result JSON Schemas."""

from __future__ import annotations

import json
import sys
from pathlib import Path

from arxpool.models import SignedResult, TallyRecord


def main(output_dir: Path | None = None) -> Path:
    """Write the JSON Schemas for signed results and tallies.

    The file lands in the repository root unless ``output_dir`` is given.
    """

    schema = {
        "signedResult": SignedResult.model_json_schema(by_alias=True),
        "tallyRecord": TallyRecord.model_json_schema(by_alias=True),
    }
    target = output_dir or Path(__file__).resolve().parent.parent
    output_path = target / "signed_result_schema.json"
    output_path.write_text(json.dumps(schema, indent=2), encoding="utf-8")
    return output_path


if __name__ == "__main__":
    main(Path(sys.argv[1]) if len(sys.argv) > 1 else None)
