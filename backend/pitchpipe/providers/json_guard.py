import json
import re


def extract_json_object(text: str) -> dict:
    """Parse the first JSON object in a model reply; {"raw": text} when there is none."""
    m = re.search(r'\{.*\}', text or "", re.S)
    if m:
        try:
            data = json.loads(m.group(0))
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass
    return {"raw": text or ""}
