"""
Synchronous answers for voice platform tool calls

Everything here is pure table lookup so a caller on a live phone line
never waits on I/O. Results of pure tools are cached per
(function, normalized arguments).
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from call_ingest.core.logging import get_logger
from call_ingest.models.events import ToolCallRequest, ToolCallResult
from call_ingest.services.cache_service import CacheService, generate_cache_key

logger = get_logger(__name__)

DEFAULT_SERVICE = "debouchage"

# Base price in dollars per service type
BASE_PRICES: Dict[str, int] = {
    "debouchage": 350,
    "nettoyage": 400,
    "inspection": 450,
}

AMOUNT_WORDS: Dict[int, str] = {
    350: "trois cent cinquante",
    400: "quatre cents",
    450: "quatre cent cinquante",
    500: "cinq cents",
    550: "cinq cent cinquante",
}

AVAILABLE_SLOTS: Tuple[str, ...] = ("9:00", "10:00", "14:00", "15:00", "16:00")

# Longest prefix first
SERVICE_AREAS: Tuple[Tuple[str, str, bool], ...] = (
    ("H7", "Laval", False),
    ("H", "Montréal", False),
    ("J", "Rive-Sud", True),
)
DEFAULT_AREA = "Grand Montréal"

COMPANY_INFO: Dict[str, Dict[str, Any]] = {
    "hours": {
        "regular": "6h00 à 15h00",
        "days": "Lundi au vendredi",
        "weekend": "Samedi sur demande",
        "emergency": "Service d'urgence 24/7 via agent IA",
    },
    "contact": {
        "phone": "438-900-4385",
        "email": "estimation@drainfortin.ca",
        "website": "drainfortin.ca",
    },
    "certifications": {
        "cmmtq": "Membre actif",
        "certifications": ["RBQ", "CMMTQ", "APCHQ"],
    },
    "warranty": {
        "general": "Garanties complètes sur tous nos services",
        "details": "Variables selon le type de service",
    },
}

SERVICE_DESCRIPTIONS: Dict[str, str] = {
    "debouchage": "Service de débouchage professionnel avec inspection caméra incluse.",
    "gainage": "Installation de gaine structurale pour réhabilitation de conduites.",
    "racines_alesage": "Enlèvement de racines par alésage mécanique.",
    "drain_francais": "Nettoyage et entretien de drain français.",
}

SERVICE_GUARANTEES: Dict[str, str] = {
    "gainage": "25 ans sur les matériaux, 5 ans main d'œuvre",
    "debouchage": "30 jours satisfaction",
    "drain_francais": "10 ans étanchéité",
}

ALERT_PRIORITIES = ("P1", "P2", "P3", "P4")


def amount_to_words(amount: int) -> str:
    return AMOUNT_WORDS.get(amount, str(amount))


class ToolResponseBuilder:
    """
    Computes the result of one named tool call

    Unknown function names get a generic answer instead of an error so a
    malformed call never fails the webhook.
    """

    # Functions with side effects are answered but never cached
    UNCACHED_FUNCTIONS = frozenset({"sendSMSAlert"})

    def __init__(
        self,
        cache: CacheService,
        ttl: Optional[float] = None,
        surcharge_keyword: str = "rive-sud",
        surcharge_amount: int = 50
    ):
        self.cache = cache
        self.ttl = ttl
        self.surcharge_keyword = surcharge_keyword.lower()
        self.surcharge_amount = surcharge_amount
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
            "getQuote": self.quote,
            "checkAvailability": self.availability,
            "checkServiceArea": self.service_area,
            "getCompanyInfo": self.company_info,
            "getServiceDetails": self.service_details,
            "sendSMSAlert": self.sms_alert_ack,
        }

    @property
    def supported_functions(self) -> List[str]:
        return sorted(self._handlers)

    def build_all(self, requests: Sequence[ToolCallRequest]) -> List[ToolCallResult]:
        """One result per request, in request order, ids preserved"""
        return [
            ToolCallResult(tool_call_id=request.id, result=self.build(request))
            for request in requests
        ]

    def build(self, request: ToolCallRequest) -> Dict[str, Any]:
        handler = self._handlers.get(request.function_name)
        if handler is None:
            logger.info(f"Unknown tool function '{request.function_name}', answering with fallback")
            return {"message": "Fonction disponible"}

        if request.function_name in self.UNCACHED_FUNCTIONS:
            return handler(request.arguments)

        key = self.cache_key(request.function_name, self.normalize(request.function_name, request.arguments))
        return self.cache.get_or_set(key, lambda: handler(request.arguments), self.ttl)

    @staticmethod
    def cache_key(function_name: str, normalized: Dict[str, Any]) -> str:
        return generate_cache_key("tool", function_name, normalized)

    def normalize(self, function_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Reduce arguments to the fields that determine the answer"""
        if function_name == "getQuote":
            return {
                "service": self._service_type(arguments),
                "surcharge": self._is_surcharge_zone(arguments),
            }
        if function_name == "checkServiceArea":
            return {"postal_prefix": self._postal_code(arguments)[:2]}
        if function_name == "getCompanyInfo":
            return {"info_type": str(arguments.get("infoType") or "").lower()}
        if function_name == "getServiceDetails":
            return {"service": self._service_type(arguments)}
        if function_name == "checkAvailability":
            return {}
        return dict(sorted(arguments.items()))

    # ==================== Pricing ====================

    def price_for(self, service_type: str, surcharge: bool) -> int:
        base = BASE_PRICES.get(service_type, BASE_PRICES[DEFAULT_SERVICE])
        return base + (self.surcharge_amount if surcharge else 0)

    def quote(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        service = self._service_type(arguments)
        amount = self.price_for(service, self._is_surcharge_zone(arguments))
        price = f"{amount_to_words(amount)} dollars"
        return {
            "service": service,
            "price": price,
            "message": f"Le prix pour {service} est {price} plus taxes.",
        }

    def warm(self) -> int:
        """Pre-compute every quote into the cache; returns entries written"""
        written = 0
        for service in BASE_PRICES:
            for surcharge in (False, True):
                key = self.cache_key("getQuote", {"service": service, "surcharge": surcharge})
                location = self.surcharge_keyword if surcharge else ""
                self.cache.set(key, self.quote({"serviceType": service, "location": location}), self.ttl)
                written += 1
        return written

    # ==================== Scheduling and areas ====================

    def availability(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "available": True,
            "slots": list(AVAILABLE_SLOTS),
            "message": "Nous avons plusieurs créneaux disponibles!",
        }

    def resolve_area(self, postal_code: str) -> Tuple[str, bool]:
        for prefix, area, surcharge in SERVICE_AREAS:
            if postal_code.startswith(prefix):
                return area, surcharge
        return DEFAULT_AREA, False

    def service_area(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        area, surcharge = self.resolve_area(self._postal_code(arguments))
        if surcharge:
            message = (
                f"Nous desservons la {area} avec un supplément de "
                f"{amount_to_words(self.surcharge_amount)} dollars."
            )
        else:
            message = "Nous desservons votre secteur au tarif standard."
        return {
            "serviced": True,
            "area": area,
            "surcharge": surcharge,
            "message": message,
        }

    # ==================== Company knowledge ====================

    def company_info(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        info_type = str(arguments.get("infoType") or "").lower()
        info = COMPANY_INFO.get(info_type)
        if info is None:
            return {
                "infoType": info_type,
                "info": {},
                "message": "Information temporairement indisponible.",
            }
        return {"infoType": info_type, "info": info, "message": "Voici l'information demandée."}

    def service_details(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        service = self._service_type(arguments)
        return {
            "service": service,
            "description": SERVICE_DESCRIPTIONS.get(service, "Service professionnel de plomberie."),
            "guarantee": SERVICE_GUARANTEES.get(service, "Garantie selon les normes de l'industrie"),
        }

    def sms_alert_ack(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Acknowledge an alert; the send itself runs in the background"""
        priority = str(arguments.get("priority") or "P3").upper()
        if priority not in ALERT_PRIORITIES:
            priority = "P3"
        return {
            "priority": priority,
            "queued": True,
            "message": f"SMS {priority} envoyé",
        }

    # ==================== Argument helpers ====================

    @staticmethod
    def _service_type(arguments: Dict[str, Any]) -> str:
        service = str(arguments.get("serviceType") or DEFAULT_SERVICE).strip().lower()
        return service or DEFAULT_SERVICE

    @staticmethod
    def _postal_code(arguments: Dict[str, Any]) -> str:
        return str(arguments.get("postalCode") or "").strip().upper()

    def _is_surcharge_zone(self, arguments: Dict[str, Any]) -> bool:
        location = str(arguments.get("location") or "").lower()
        if self.surcharge_keyword and self.surcharge_keyword in location:
            return True
        return self.resolve_area(self._postal_code(arguments))[1]
