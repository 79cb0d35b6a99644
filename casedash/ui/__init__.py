"""
UI Module
=========

Streamlit dashboard for parsed cases:
- Case metrics
- Bus, generator and branch tables
- Network graph
- Optional AC power flow
"""
