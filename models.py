"""
models.py — Python dataclasses for the plant care journal.

Attributes are snake_case; to_dict()/from_dict() speak the camelCase JSON
used by the AI payload, the HTTP API and the persisted document.

from_dict() never raises on bad content: every field is decoded with
its own fallback (see utils/validators.py).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from utils.validators import (
    coerce_mapping,
    coerce_optional_text,
    coerce_score,
    coerce_text,
    coerce_text_list,
    format_instant,
    parse_instant,
)


DEFAULT_PLANT_NAME = 'Unknown Plant'
DEFAULT_COMMON_NAME = 'Unidentified Species'
DEFAULT_HEALTH_STATUS = 'unknown'
DEFAULT_DIAGNOSIS = 'Health status could not be determined from this image'

DEFAULT_CARE_ADVICE = (
    'Provide appropriate lighting for the species',
    'Water when the top inch of soil feels dry',
    'Ensure good drainage to prevent root rot',
    'Monitor for pests and diseases regularly',
)

QUICK_FACT_DEFAULTS = {
    'origin': 'Unknown',
    'difficulty': 'Unknown',
    'growthRate': 'Unknown',
    'toxicity': 'Unknown - keep away from pets',
    'lightRequirement': 'Bright, indirect light',
    'waterFrequency': 'When soil is dry',
    'humidity': '40-60%',
    'temperature': '65-75°F',
}

DEFAULT_OVERALL_CONDITION = 'Unable to assess condition from this image'
DEFAULT_STRENGTHS = ('Plant appears to be surviving',)
DEFAULT_CONCERNS = ('Monitor for any changes',)
DEFAULT_RECOMMENDATIONS = ('Continue regular care routine',)

NON_PLANT_DEFAULTS = {
    'objectType': 'unknown object',
    'objectName': 'unidentified object',
    'explanation': 'This object cannot be identified.',
    'whyNotPlant': (
        'PlantPal is designed to help you care for plants, flowers, and trees. '
        'Please take a photo of a botanical specimen instead.'
    ),
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def identification_token(moment: datetime) -> str:
    """Time-based token: plant_<epoch milliseconds>."""
    return f"plant_{int(moment.timestamp() * 1000)}"


@dataclass
class QuickFacts:
    """Care summary; each fact is defaulted on its own."""
    origin: str = QUICK_FACT_DEFAULTS['origin']
    difficulty: str = QUICK_FACT_DEFAULTS['difficulty']
    growth_rate: str = QUICK_FACT_DEFAULTS['growthRate']
    toxicity: str = QUICK_FACT_DEFAULTS['toxicity']
    light_requirement: str = QUICK_FACT_DEFAULTS['lightRequirement']
    water_frequency: str = QUICK_FACT_DEFAULTS['waterFrequency']
    humidity: str = QUICK_FACT_DEFAULTS['humidity']
    temperature: str = QUICK_FACT_DEFAULTS['temperature']

    @classmethod
    def from_dict(cls, data: Any) -> 'QuickFacts':
        data = coerce_mapping(data)
        return cls(
            origin=coerce_text(data.get('origin'), QUICK_FACT_DEFAULTS['origin']),
            difficulty=coerce_text(data.get('difficulty'), QUICK_FACT_DEFAULTS['difficulty']),
            growth_rate=coerce_text(data.get('growthRate'), QUICK_FACT_DEFAULTS['growthRate']),
            toxicity=coerce_text(data.get('toxicity'), QUICK_FACT_DEFAULTS['toxicity']),
            light_requirement=coerce_text(data.get('lightRequirement'), QUICK_FACT_DEFAULTS['lightRequirement']),
            water_frequency=coerce_text(data.get('waterFrequency'), QUICK_FACT_DEFAULTS['waterFrequency']),
            humidity=coerce_text(data.get('humidity'), QUICK_FACT_DEFAULTS['humidity']),
            temperature=coerce_text(data.get('temperature'), QUICK_FACT_DEFAULTS['temperature']),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            'origin': self.origin,
            'difficulty': self.difficulty,
            'growthRate': self.growth_rate,
            'toxicity': self.toxicity,
            'lightRequirement': self.light_requirement,
            'waterFrequency': self.water_frequency,
            'humidity': self.humidity,
            'temperature': self.temperature,
        }


@dataclass
class HealthInsights:
    """Health assessment; the three lists are never empty."""
    overall_condition: str = DEFAULT_OVERALL_CONDITION
    strengths: List[str] = field(default_factory=lambda: list(DEFAULT_STRENGTHS))
    concerns: List[str] = field(default_factory=lambda: list(DEFAULT_CONCERNS))
    recommendations: List[str] = field(default_factory=lambda: list(DEFAULT_RECOMMENDATIONS))

    @classmethod
    def from_dict(cls, data: Any) -> 'HealthInsights':
        data = coerce_mapping(data)
        return cls(
            overall_condition=coerce_text(data.get('overallCondition'), DEFAULT_OVERALL_CONDITION),
            strengths=coerce_text_list(data.get('strengths'), DEFAULT_STRENGTHS),
            concerns=coerce_text_list(data.get('concerns'), DEFAULT_CONCERNS),
            recommendations=coerce_text_list(data.get('recommendations'), DEFAULT_RECOMMENDATIONS),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overallCondition': self.overall_condition,
            'strengths': list(self.strengths),
            'concerns': list(self.concerns),
            'recommendations': list(self.recommendations),
        }


@dataclass
class AnalysisResult:
    """Normalized plant analysis, not yet persisted."""
    plant_name: str = DEFAULT_PLANT_NAME
    common_name: str = DEFAULT_COMMON_NAME
    confidence: int = 50
    health_status: str = DEFAULT_HEALTH_STATUS
    health_score: int = 50
    diagnosis: str = DEFAULT_DIAGNOSIS
    care_advice: List[str] = field(default_factory=lambda: list(DEFAULT_CARE_ADVICE))
    quick_facts: QuickFacts = field(default_factory=QuickFacts)
    health_insights: HealthInsights = field(default_factory=HealthInsights)
    identification_id: str = ''
    timestamp: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Any, now: Optional[datetime] = None) -> 'AnalysisResult':
        """
        Decode an untyped payload. identificationId and timestamp are always
        generated from `now`, never taken from the payload.
        """
        data = coerce_mapping(data)
        now = now or utc_now()
        return cls(
            identification_id=identification_token(now),
            timestamp=now,
            **_analysis_fields(data),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'plantName': self.plant_name,
            'commonName': self.common_name,
            'confidence': self.confidence,
            'healthStatus': self.health_status,
            'healthScore': self.health_score,
            'diagnosis': self.diagnosis,
            'careAdvice': list(self.care_advice),
            'quickFacts': self.quick_facts.to_dict(),
            'healthInsights': self.health_insights.to_dict(),
            'identificationId': self.identification_id,
            'timestamp': format_instant(self.timestamp),
        }

    def to_draft(self, image_uri: str = '', **user_fields) -> Dict[str, Any]:
        """Build a store draft from this analysis plus the image reference."""
        draft = self.to_dict()
        draft['imageUri'] = image_uri
        draft.update(user_fields)
        return draft


def _analysis_fields(data: dict) -> Dict[str, Any]:
    """Decode the fields AnalysisResult and SavedPlant share."""
    # Records saved by early versions used 'name' instead of 'plantName'.
    plant_name = data.get('plantName', data.get('name'))
    return {
        'plant_name': coerce_text(plant_name, DEFAULT_PLANT_NAME),
        'common_name': coerce_text(data.get('commonName'), DEFAULT_COMMON_NAME),
        'confidence': coerce_score(data.get('confidence')),
        'health_status': coerce_text(data.get('healthStatus'), DEFAULT_HEALTH_STATUS),
        'health_score': coerce_score(data.get('healthScore')),
        'diagnosis': coerce_text(data.get('diagnosis'), DEFAULT_DIAGNOSIS),
        'care_advice': coerce_text_list(data.get('careAdvice'), DEFAULT_CARE_ADVICE),
        'quick_facts': QuickFacts.from_dict(data.get('quickFacts')),
        'health_insights': HealthInsights.from_dict(data.get('healthInsights')),
    }


@dataclass
class NonPlantResult:
    """Classification of an image that does not show a plant."""
    object_type: str = NON_PLANT_DEFAULTS['objectType']
    object_name: str = NON_PLANT_DEFAULTS['objectName']
    explanation: str = NON_PLANT_DEFAULTS['explanation']
    why_not_plant: str = NON_PLANT_DEFAULTS['whyNotPlant']

    @classmethod
    def from_dict(cls, data: Any) -> 'NonPlantResult':
        data = coerce_mapping(data)
        return cls(
            object_type=coerce_text(data.get('objectType'), NON_PLANT_DEFAULTS['objectType']),
            object_name=coerce_text(data.get('objectName'), NON_PLANT_DEFAULTS['objectName']),
            explanation=coerce_text(data.get('explanation'), NON_PLANT_DEFAULTS['explanation']),
            why_not_plant=coerce_text(data.get('whyNotPlant'), NON_PLANT_DEFAULTS['whyNotPlant']),
        )

    @property
    def message(self) -> str:
        return f"This appears to be {self.object_name}. PlantPal is designed for plant care."

    def to_dict(self) -> Dict[str, str]:
        return {
            'objectType': self.object_type,
            'objectName': self.object_name,
            'explanation': self.explanation,
            'whyNotPlant': self.why_not_plant,
        }


# camelCase key -> SavedPlant attribute, for everything a caller may send.
SAVED_PLANT_FIELDS = {
    'id': 'id',
    'dateAdded': 'date_added',
    'plantName': 'plant_name',
    'commonName': 'common_name',
    'confidence': 'confidence',
    'healthStatus': 'health_status',
    'healthScore': 'health_score',
    'diagnosis': 'diagnosis',
    'careAdvice': 'care_advice',
    'quickFacts': 'quick_facts',
    'healthInsights': 'health_insights',
    'identificationId': 'identification_id',
    'timestamp': 'timestamp',
    'imageUri': 'image_uri',
    'customName': 'custom_name',
    'notes': 'notes',
    'lastWatered': 'last_watered',
    'lastFertilized': 'last_fertilized',
}
_ATTRIBUTE_TO_KEY = {attr: key for key, attr in SAVED_PLANT_FIELDS.items()}
IMMUTABLE_FIELDS = ('id', 'dateAdded')


def canonical_key(name: str) -> Optional[str]:
    """Map a camelCase or snake_case field name to its camelCase key."""
    if name in SAVED_PLANT_FIELDS:
        return name
    return _ATTRIBUTE_TO_KEY.get(name)


@dataclass
class SavedPlant:
    """A plant in the user's journal."""
    id: str = ''
    date_added: Optional[datetime] = None
    plant_name: str = DEFAULT_PLANT_NAME
    common_name: str = DEFAULT_COMMON_NAME
    confidence: int = 50
    health_status: str = DEFAULT_HEALTH_STATUS
    health_score: int = 50
    diagnosis: str = DEFAULT_DIAGNOSIS
    care_advice: List[str] = field(default_factory=lambda: list(DEFAULT_CARE_ADVICE))
    quick_facts: QuickFacts = field(default_factory=QuickFacts)
    health_insights: HealthInsights = field(default_factory=HealthInsights)
    identification_id: str = ''
    timestamp: Optional[datetime] = None
    image_uri: str = ''
    custom_name: Optional[str] = None
    notes: Optional[str] = None
    last_watered: Optional[datetime] = None
    last_fertilized: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.custom_name or self.common_name

    @classmethod
    def from_dict(cls, data: Any) -> 'SavedPlant':
        """
        Decode a stored or submitted record. Absent fields are defaulted
        so documents written by older versions stay readable.
        """
        data = coerce_mapping(data)
        date_added = parse_instant(data.get('dateAdded'))
        timestamp = parse_instant(data.get('timestamp')) or date_added
        identification_id = coerce_text(data.get('identificationId'), '')
        if not identification_id and timestamp is not None:
            identification_id = identification_token(timestamp)
        image_uri = data.get('imageUri')
        return cls(
            id=coerce_text(data.get('id'), ''),
            date_added=date_added,
            identification_id=identification_id,
            timestamp=timestamp,
            image_uri=image_uri if isinstance(image_uri, str) else '',
            custom_name=coerce_optional_text(data.get('customName')),
            notes=coerce_optional_text(data.get('notes')),
            last_watered=parse_instant(data.get('lastWatered')),
            last_fertilized=parse_instant(data.get('lastFertilized')),
            **_analysis_fields(data),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'id': self.id,
            'dateAdded': format_instant(self.date_added),
            'plantName': self.plant_name,
            'commonName': self.common_name,
            'confidence': self.confidence,
            'healthStatus': self.health_status,
            'healthScore': self.health_score,
            'diagnosis': self.diagnosis,
            'careAdvice': list(self.care_advice),
            'quickFacts': self.quick_facts.to_dict(),
            'healthInsights': self.health_insights.to_dict(),
            'identificationId': self.identification_id,
            'timestamp': format_instant(self.timestamp),
            'imageUri': self.image_uri,
        }
        # Optional user fields are omitted while unset
        for attr in ('custom_name', 'notes'):
            value = getattr(self, attr)
            if value is not None:
                result[_ATTRIBUTE_TO_KEY[attr]] = value
        for attr in ('last_watered', 'last_fertilized'):
            value = getattr(self, attr)
            if value is not None:
                result[_ATTRIBUTE_TO_KEY[attr]] = format_instant(value)
        return result
