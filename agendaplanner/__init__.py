"""
Agenda planner: projects weekly class schedules onto a calendar and
reconciles the generated slots with authored lessons.
"""
