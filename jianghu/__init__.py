"""Jianghu — orchestration core for a turn-based wuxia narrative game.

The world (locations, NPCs, sects) evolves each tick, rule-based events fire
against a trigger registry, and narration is routed to a template or to a
text-generation backend by a tiered dispatcher. All game state lives in a
single GameStore and changes only through actions.
"""
