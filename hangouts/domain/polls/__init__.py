"""Polls domain - Voting, consensus evaluation and finalization"""
