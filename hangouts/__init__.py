"""Hangout planning core - polls, consensus, finalization and RSVPs"""
