import csv
import logging
from datetime import date
from typing import List

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from schoolcal.models import Occurrence
from schoolcal.timeutil import WEEKDAY_SHORT, format_date_display, format_time

HEADER = ["Date", "Weekday", "Start", "End", "Label", "Kind"]


def occurrence_row(o: Occurrence) -> List[str]:
    label = o.label
    if o.moved:
        label += " (moved)"
    return [o.day.isoformat(), WEEKDAY_SHORT[o.day.weekday()],
            format_time(o.start_time), format_time(o.end_time), label, o.kind]


def export_csv(occurrences: List[Occurrence], filename: str):
    with open(filename, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(HEADER)
        for o in occurrences:
            writer.writerow(occurrence_row(o))
    logging.info(f"CSV export written: {filename} ({len(occurrences)} rows)")


def export_pdf(occurrences: List[Occurrence], filename: str, start: date, end: date,
               title: str = 'School calendar'):
    """One line per occurrence, paginated."""
    c = canvas.Canvas(filename, pagesize=A4)
    w, h = A4

    def header(y):
        c.setFont('Helvetica-Bold', 11)
        c.drawString(40, y, "Date        | Day | Time        | Label")
        c.setFont('Helvetica', 10)
        return y - 18

    y = h - 40
    c.setFont('Helvetica-Bold', 14)
    c.drawString(40, y, title)
    y -= 24
    c.setFont('Helvetica', 10)
    c.drawString(40, y, f"Period: {format_date_display(start)} - {format_date_display(end)} (exclusive)")
    y -= 16
    c.drawString(40, y, f"Occurrences: {len(occurrences)}")
    y -= 26
    y = header(y)

    for o in occurrences:
        if y < 50:
            c.showPage()
            y = header(h - 40)
        day, wd, st, et, label, _ = occurrence_row(o)
        c.drawString(40, y, f"{day}  | {wd}  | {st}-{et} | {label}")
        y -= 14
    c.save()
    logging.info(f"PDF export written: {filename}")
