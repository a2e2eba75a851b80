"""Offline analysis client adapter.

Use this module as a reference when implementing new provider adapters:
implement BaseAnalysisClient and register the provider in AnalysisClientFactory.
"""

import json
import re
from typing import ClassVar

from necromancer.analysis.client_base import BaseAnalysisClient


class ExampleClientAdapter(BaseAnalysisClient):
    """Returns one canned finding about the first token seen in the prompt.

    No network calls. Useful for local development and tests: the finding
    names a real token, so de-identification is exercised end to end.
    """

    _TOKEN_RE: ClassVar[re.Pattern[str]] = re.compile(r'"token":\s*"([^"]+)"')

    def create_chat_completion(
        self,
        *,
        model: str,
        temperature: float,
        system_prompt: str,
        user_prompt: str,
    ) -> str:
        _ = model, temperature, system_prompt
        match = self._TOKEN_RE.search(user_prompt)
        entity = match.group(1) if match else "unknown"
        finding = {
            "Title": f"Dormant control held by {entity}",
            "Category": "Abandoned Identity",
            "EntityName": entity,
            "EntityType": "Unknown",
            "Reasoning": f"{entity} retains control edges but shows no recent activity.",
            "Probability": "Medium",
            "Mitigation": f"Review and remove unused rights held by {entity}.",
        }
        return "```json\n" + json.dumps([finding], indent=2) + "\n```"
