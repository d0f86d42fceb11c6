"""Curated disease information used when every remote provider comes up empty."""

import re
from typing import Dict, Optional

from app.schemas import DiseaseInfo

STATIC_SOURCE = "Default Database"
DEFAULT_SOURCE = "default"

DISEASES: Dict[str, Dict[str, object]] = {
    "potato_early_blight": {
        "description": "Early blight is a common fungal disease of potatoes caused by Alternaria solani.",
        "causes": ["Fungal infection", "Wet weather conditions", "Poor air circulation"],
        "symptoms": ["Dark brown spots on leaves", "Yellowing of leaves", "Defoliation"],
        "prevention": ["Crop rotation", "Proper spacing", "Fungicide application"],
        "treatment": ["Remove infected leaves", "Apply chlorothalonil or mancozeb fungicide"],
    },
    "potato_late_blight": {
        "description": "Late blight is a devastating disease caused by Phytophthora infestans.",
        "causes": ["Fungal infection", "Cool, wet weather", "High humidity"],
        "symptoms": ["Water-soaked lesions", "White fungal growth", "Rapid plant death"],
        "prevention": ["Resistant varieties", "Fungicide sprays", "Good drainage"],
        "treatment": ["Destroy infected plants", "Apply systemic fungicide promptly"],
    },
    "tomato_early_blight": {
        "description": "Early blight of tomato is caused by the fungus Alternaria solani and attacks leaves, stems and fruit.",
        "causes": ["Fungal infection", "Warm, humid weather", "Infected plant debris"],
        "symptoms": ["Concentric ring spots on older leaves", "Yellowing around lesions", "Stem cankers"],
        "prevention": ["Crop rotation", "Mulching", "Staking to improve air flow"],
        "treatment": ["Prune lower infected leaves", "Apply copper or chlorothalonil fungicide"],
    },
    "tomato_late_blight": {
        "description": "Late blight of tomato is caused by Phytophthora infestans and spreads rapidly in cool, wet conditions.",
        "causes": ["Oomycete infection", "Cool, wet weather", "Infected transplants or tubers"],
        "symptoms": ["Greasy grey-green leaf patches", "White growth on leaf undersides", "Brown firm fruit rot"],
        "prevention": ["Resistant varieties", "Avoid overhead irrigation", "Remove volunteer plants"],
        "treatment": ["Remove and destroy infected plants", "Apply protective fungicide"],
    },
    "tomato_leaf_mold": {
        "description": "Leaf mold is a fungal disease of tomato caused by Passalora fulva, mostly in greenhouses.",
        "causes": ["Fungal infection", "High humidity", "Poor ventilation"],
        "symptoms": ["Pale yellow spots on upper leaf surface", "Olive-green mold on leaf undersides"],
        "prevention": ["Ventilation", "Lower humidity", "Resistant varieties"],
        "treatment": ["Remove affected leaves", "Apply fungicide"],
    },
    "corn_common_rust": {
        "description": "Common rust of maize is caused by the fungus Puccinia sorghi.",
        "causes": ["Fungal infection", "Cool temperatures", "High humidity"],
        "symptoms": ["Cinnamon-brown pustules on both leaf surfaces", "Leaf yellowing"],
        "prevention": ["Resistant hybrids", "Early planting"],
        "treatment": ["Apply foliar fungicide when severe"],
    },
    "pepper_bacterial_spot": {
        "description": "Bacterial spot of pepper is caused by Xanthomonas species.",
        "causes": ["Bacterial infection", "Warm, wet weather", "Contaminated seed"],
        "symptoms": ["Small water-soaked leaf spots", "Leaf drop", "Raised scabby fruit spots"],
        "prevention": ["Disease-free seed", "Crop rotation", "Avoid overhead irrigation"],
        "treatment": ["Copper-based sprays", "Remove infected plants"],
    },
}


def normalize_class(disease_class: str) -> str:
    return re.sub(r"[\s\-]+", "_", disease_class.strip().lower())


def lookup(disease_class: str) -> Optional[DiseaseInfo]:
    entry = DISEASES.get(normalize_class(disease_class))
    if entry is None:
        return None
    return DiseaseInfo(source=STATIC_SOURCE, **entry)


def default_info(disease_class: str) -> DiseaseInfo:
    label = disease_class.replace("_", " ").strip() or "this disease"
    return DiseaseInfo(
        description=f"Information about {label} is not available.",
        causes=["Environmental factors", "Pathogen infection"],
        symptoms=["Visible damage to plant tissue", "Abnormal growth patterns"],
        prevention=["Good agricultural practices", "Regular monitoring"],
        treatment=["Remove infected plants", "Consult local agricultural extension"],
        source=DEFAULT_SOURCE,
    )
