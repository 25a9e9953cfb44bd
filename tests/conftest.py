"""Shared fixtures: a realistic order-form transcript and reference catalogs."""

import json

import pytest

from orderfusion.core.settings import AppSettings
from orderfusion.models.dto import CatalogEntry
from orderfusion.processors.catalog import ReferenceCatalog

ORDER_FORM_TEXT = """DEMANDE DE GAIN
À établir à l'ordre de
VOTRE COMMANDE
MADAME WARK CASPAR
NUMÉRO CLIENT 170605886
CODE PRIVILÈGE 4G8M
Tél. portable 06 12 34 56 78
Date de naissance 12/03/1975
PAGE NOM DU MODÈLE COLORIS RÉFÉRENCE TAILLE QUANTITÉ PRIX UNITAIRE TOTAL
195 ROBE FLUIDE 281.8341 1 39,99 € 39,99 €
Participation forfaitaire aux frais 6,49
Total de ma commande 125,46
MODES DE PAIEMENT
PAR CARTE
Validité 12/2026
"""

# Same form with the table header lost and the row broken over several lines
NOISY_ORDER_FORM_TEXT = """MONSIEUR DUPONT JEAN
NUMÉRO CLIENT 17O6O5886
CODE PRIVILÈGE 4G8M
Tél. portable 03 12 34 56 78
PAGE
NOM DU MODÈLE
42
Jupe plissée noire
512.0417
1
24,50 €
24,50 €
Total de ma commande 3099
"""

CATALOG_ENTRIES = [
    {"reference": "281.8341", "model": "Robe fluide imprimée", "color": "bleu", "size": "42", "price": 39.99},
    {"reference": "512.0417", "model": "Jupe plissée", "color": "noir", "size": None, "price": "24,50"},
    {"reference": "305.1123", "model": "Pantalon droit", "color": "beige", "size": "40", "price": 29.99},
]

NESTED_CATALOG = [
    {
        "demandes": [
            {
                "items": [
                    {"Codif cat": "281.8341", "Modèle": "Robe fluide imprimée", "coloris": "bleu", "Taille": 42, "PV": 39.99},
                    {"Codif cat": "512.0417", "Modèle": "Jupe plissée", "coloris": "noir", "Taille": None, "PV": 24.5},
                ]
            }
        ]
    }
]


@pytest.fixture
def order_form_text():
    return ORDER_FORM_TEXT


@pytest.fixture
def noisy_order_form_text():
    return NOISY_ORDER_FORM_TEXT


@pytest.fixture
def catalog_entries():
    return [dict(entry) for entry in CATALOG_ENTRIES]


@pytest.fixture
def catalog():
    return ReferenceCatalog(CatalogEntry.model_validate(entry) for entry in CATALOG_ENTRIES)


@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(CATALOG_ENTRIES, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def nested_catalog_file(tmp_path):
    path = tmp_path / "references.json"
    path.write_text(json.dumps(NESTED_CATALOG, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def settings():
    """Settings isolated from the host environment and any .env file."""
    return AppSettings(
        _env_file=None,
        LOG_LEVEL="DEBUG",
        LOG_JSON=False,
        CATALOG_PATH=None,
        ENABLE_REFERENCE_CORRECTION=True,
    )
