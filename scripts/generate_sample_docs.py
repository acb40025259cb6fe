#!/usr/bin/env python3
"""
Generate a sample document batch for trying out the semantic index.

Scenario: one Iowa County farm with a soil analysis, an irrigation water
report, and a soybean planting note. Load it with:

    semantic-index index --input data/sample_documents.json --owner demo
"""

import json
import os

OUTPUT_DIR = "data"
OUTPUT_FILE = "sample_documents.json"

DOCUMENTS = [
    {
        "id": "sample-soil-1",
        "text": (
            "Soil analysis shows pH level of 6.8, organic matter at 3.2%, nitrogen 45 ppm, "
            "phosphorus 28 ppm, potassium 180 ppm. Good fertility for corn production in "
            "Iowa County."
        ),
        "metadata": {
            "type": "soil_analysis",
            "region_code": "19105",
            "category_tag": "corn",
            "title": "Iowa County Corn Field Analysis",
        },
    },
    {
        "id": "sample-water-1",
        "text": (
            "Water quality testing reveals acceptable levels for agricultural irrigation. "
            "Nitrate concentration 8.5 mg/L, pH 7.2, minimal bacterial contamination detected."
        ),
        "metadata": {
            "type": "water_quality",
            "region_code": "19105",
            "title": "Irrigation Water Quality Report",
        },
    },
    {
        "id": "sample-planting-1",
        "text": (
            "Optimal planting window for soybeans in this region is late April to mid-May. "
            "Soil temperature should reach 60°F consistently. Consider frost risk until May 15th."
        ),
        "metadata": {
            "type": "planting_optimization",
            "region_code": "19105",
            "category_tag": "soybeans",
            "title": "Soybean Planting Calendar",
        },
    },
]


def main():
    os.makedirs(OUTPUT_DIR, exist_ok=True)
    path = os.path.join(OUTPUT_DIR, OUTPUT_FILE)

    with open(path, "w", encoding="utf-8") as handle:
        json.dump(DOCUMENTS, handle, indent=2, ensure_ascii=False)

    print(f"\nGenerated {len(DOCUMENTS)} sample documents in {path}\n")
    for doc in DOCUMENTS:
        print(f"  {doc['id']:<20} {doc['metadata']['type']:<22} {doc['metadata']['title']}")
    print("\nTry:")
    print(f"  semantic-index index --input {path} --owner demo")
    print('  semantic-index search --owner demo --query "when should I plant soybeans"')


if __name__ == "__main__":
    main()
