#!/usr/bin/env python
"""
Generate sample inputs for the transcript ingestion pipeline.

This script creates:
- A transcript PDF with a text layer (primary extraction path)
- A scanned transcript PDF with no text layer (OCR fallback path)
- A record store JSON with a small generic catalog and prefix keywords

Usage:
    python examples/generate_samples.py
"""

import json
from pathlib import Path

import numpy as np

STUDENT = "Jordan Avery"
UNIVERSITY = "Lakeside Community College"

TERMS = [
    ("Fall 2022", [
        ("MATH 1314", "College Algebra", "A", "3.00"),
        ("ENGL 1301", "Composition I", "B+", "3.00"),
        ("BIOL 1406", "General Biology I", "A-", "4.00"),
    ]),
    ("Spring 2023", [
        ("CMSC 1313", "Programming in C", "A", "3.00"),
        ("HIST 1301", "United States History I", "B", "3.00"),
        ("MUSI 1306", "Music Appreciation", "A", "3.00"),
    ]),
]

CATALOG = [
    {"id": 101, "code": "MATH", "number": "MATH-0013", "description": "Generic Mathematics Elective", "hours": 3},
    {"id": 102, "code": "MATH", "number": "MATH-0014", "description": "Generic Mathematics Elective", "hours": 4},
    {"id": 103, "code": "CMSC", "number": "CMSC-0013", "description": "Generic Computer Science Elective", "hours": 3},
    {"id": 104, "code": "ENGL", "number": "ENGL-0013", "description": "Generic English Composition Elective", "hours": 3},
    {"id": 105, "code": "BIOL", "number": "BIOL-0014", "description": "Generic Biology Elective", "hours": 4},
    {"id": 106, "code": "HIST", "number": "HIST-0013", "description": "Generic History Elective", "hours": 3},
    {"id": 201, "code": "MATH", "number": "2414", "description": "Calculus II integration techniques sequences series", "hours": 4},
    {"id": 202, "code": "CMSC", "number": "2325", "description": "Data structures algorithms programming", "hours": 3},
    {"id": 203, "code": "BIOL", "number": "1406", "description": "Cell biology genetics evolution laboratory", "hours": 4},
]

PREFIX_KEYWORDS = [
    {"prefix": "BIOL", "keywords": "biology, cell, genetics, evolution, anatomy, physiology, microbiology"},
    {"prefix": "CMSC", "keywords": "computer, programming, software, data, algorithms, computing"},
    {"prefix": "ENGL", "keywords": "english, composition, writing, literature, rhetoric"},
    {"prefix": "HIST", "keywords": "history, civilization, american, world, historical"},
    {"prefix": "MATH", "keywords": "mathematics, algebra, calculus, statistics, trigonometry, geometry"},
]


def create_transcript_pdf(output_path: Path):
    """Create a single-column transcript PDF with a text layer."""
    from fpdf import FPDF
    from fpdf.enums import XPos, YPos

    pdf = FPDF()
    pdf.add_page()
    pdf.set_auto_page_break(auto=True, margin=15)

    pdf.set_font('Helvetica', 'B', 16)
    pdf.multi_cell(0, 8, UNIVERSITY, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font('Helvetica', '', 11)
    pdf.multi_cell(0, 6, f"Official Academic Transcript for {STUDENT}", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(4)

    for term, courses in TERMS:
        pdf.set_font('Helvetica', 'B', 12)
        pdf.multi_cell(0, 7, term, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_font('Helvetica', '', 10)
        for number, title, grade, hours in courses:
            pdf.cell(30, 6, number, new_x=XPos.RIGHT, new_y=YPos.TOP)
            pdf.cell(90, 6, title, new_x=XPos.RIGHT, new_y=YPos.TOP)
            pdf.cell(20, 6, grade, new_x=XPos.RIGHT, new_y=YPos.TOP)
            pdf.cell(20, 6, hours, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.multi_cell(0, 6, "Term GPA 3.67    Cumulative GPA 3.67", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.ln(3)

    pdf.output(str(output_path))


def create_scanned_page() -> np.ndarray:
    """Create a transcript page image with no text layer."""
    import cv2

    img = np.ones((1100, 850, 3), dtype=np.uint8) * 255

    cv2.putText(img, UNIVERSITY, (50, 70),
               cv2.FONT_HERSHEY_DUPLEX, 1.0, (0, 0, 0), 2)
    cv2.putText(img, f"Student: {STUDENT}", (50, 120),
               cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 0, 0), 1)

    y = 190
    for term, courses in TERMS:
        cv2.putText(img, term, (50, y),
                   cv2.FONT_HERSHEY_SIMPLEX, 0.8, (0, 0, 0), 2)
        y += 40
        for number, title, grade, hours in courses:
            cv2.putText(img, f"{number}   {title}   {grade}   {hours}", (70, y),
                       cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 0, 0), 1)
            y += 32
        y += 30

    return img


def create_scanned_pdf(output_path: Path, image_path: Path):
    """Wrap the scanned page image in a PDF."""
    import cv2
    from fpdf import FPDF

    cv2.imwrite(str(image_path), create_scanned_page())

    pdf = FPDF()
    pdf.add_page()
    pdf.image(str(image_path), x=0, y=0, w=210)
    pdf.output(str(output_path))


def create_record_store() -> dict:
    """Create a record store with an empty transcript course table."""
    return {
        "catalog": CATALOG,
        "prefixKeywords": PREFIX_KEYWORDS,
        "transcriptCourses": [],
    }


def main():
    samples_dir = Path(__file__).parent / "sample_transcripts"
    samples_dir.mkdir(exist_ok=True)

    transcript_path = samples_dir / "sample_transcript.pdf"
    create_transcript_pdf(transcript_path)
    print(f"Created: {transcript_path}")

    scanned_path = samples_dir / "sample_scanned.pdf"
    create_scanned_pdf(scanned_path, samples_dir / "sample_scanned.png")
    print(f"Created: {scanned_path}")

    store_path = samples_dir / "records.json"
    with open(store_path, 'w') as f:
        json.dump(create_record_store(), f, indent=2)
    print(f"Created: {store_path}")

    print("\nSample generation complete!")
    print("Try: transcript-ingest extract --input examples/sample_transcripts/sample_transcript.pdf "
          "--output ./output --store examples/sample_transcripts/records.json --transcript-id 1")


if __name__ == "__main__":
    main()
