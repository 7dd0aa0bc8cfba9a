"""Properties app package.

Holds the minimal property record the booking engine depends on: owner,
nightly price, bookable status and the calendar version counter.
"""
