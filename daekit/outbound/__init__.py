"""Outbound dialers, health tracking, groups, filters and selection policies."""