"""
AnalysisProvider - Emergency Tactical Analysis

Produces a short free-text tactical assessment for the dispatch log.
The HTTP provider forwards the request to a text-generation service; the
template provider answers offline from canned guidance.
"""

import logging
import random
from typing import Optional

import requests

from greenwave.errors import AnalysisProviderError

logger = logging.getLogger(__name__)


class AnalysisProvider:
    """Analysis provider interface."""

    def analyze(self, emergency_type: str, severity: str, context_hint: str) -> str:
        """
        Return a tactical summary for the emergency.

        Raises:
            AnalysisProviderError: If the analysis cannot be produced
        """
        raise NotImplementedError


class TemplateAnalysisProvider(AnalysisProvider):
    """Offline analysis assembled from per-type guidance."""

    GUIDANCE = {
        "Cardiac Arrest": "Prep defibrillator and airway kit; every minute without CPR cuts survival ~10%.",
        "Severe Trauma": "Prep hemorrhage control and spinal immobilization; target the golden hour.",
        "Stroke": "Record last-known-well time; pre-alert stroke team for thrombolysis window.",
        "Organ Transport": "Maintain cold chain; confirm receiving surgical team on arrival.",
    }
    DEFAULT_GUIDANCE = "Prepare standard ALS kit and confirm receiving facility."

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def analyze(self, emergency_type: str, severity: str, context_hint: str) -> str:
        guidance = self.GUIDANCE.get(emergency_type, self.DEFAULT_GUIDANCE)
        delay_estimate = self.rng.randint(2, 6)
        return (f"AI ANALYSIS [{severity.upper()}] {emergency_type}: {guidance} "
                f"Traffic: {context_hint}, corridor preemption saves ~{delay_estimate} min.")


class HttpAnalysisProvider(AnalysisProvider):
    """
    Analysis via a JSON text-generation endpoint.

    POSTs {emergency_type, severity, context_hint} and expects
    {"text": "..."} in the response.
    """

    def __init__(self, config: dict = None, session: requests.Session = None):
        self.config = config or {}
        self.endpoint = self.config.get('endpoint')
        self.api_key = self.config.get('api_key')
        self.timeout = self.config.get('timeout', 15.0)
        self.session = session or requests.Session()

        if not self.endpoint:
            raise ValueError("analysis.endpoint is required for the http provider")

    def analyze(self, emergency_type: str, severity: str, context_hint: str) -> str:
        headers = {'Content-Type': 'application/json'}
        if self.api_key:
            headers['Authorization'] = f"Bearer {self.api_key}"

        payload = {
            'emergency_type': emergency_type,
            'severity': severity,
            'context_hint': context_hint
        }

        try:
            response = self.session.post(self.endpoint, json=payload,
                                         headers=headers, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout:
            raise AnalysisProviderError("Analysis request timed out")
        except requests.exceptions.RequestException as e:
            raise AnalysisProviderError(f"Analysis request error: {e}")
        except ValueError:
            raise AnalysisProviderError("Analysis service returned invalid JSON")

        text = data.get('text') if isinstance(data, dict) else None
        if not text:
            raise AnalysisProviderError("Analysis service returned no text")
        return str(text).strip()


def create_analysis_provider(config: dict = None,
                             rng: Optional[random.Random] = None) -> AnalysisProvider:
    """Build the provider named by analysis.provider."""
    config = config or {}
    name = config.get('provider', 'template')
    if name == 'template':
        return TemplateAnalysisProvider(rng)
    if name == 'http':
        return HttpAnalysisProvider(config)
    raise ValueError(f"Unknown analysis provider: {name}")
