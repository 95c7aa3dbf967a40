"""Position tracking, entries and TP/SL monitoring"""
