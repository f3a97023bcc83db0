"""Hangouts domain - Creation flow, participants and RSVPs"""
