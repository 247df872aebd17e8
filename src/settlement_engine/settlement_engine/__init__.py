"""Task & Attendance Settlement Engine package.

Organized by feature modules (tasks, attendance, missed_checkout, settlement, ...)
with a thin Flask controller layer over service/repository layers.
"""
