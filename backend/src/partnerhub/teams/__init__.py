"""Teams module for PartnerHub.

Team lifecycle and membership:
- Create, update, query and disband teams
- Join, exit, leadership change and kick-out
- Visibility (public, private, secret)
"""
