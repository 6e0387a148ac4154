"""Chat and admin interfaces for the loreweave session engine"""
