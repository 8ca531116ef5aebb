"""Services: codec, compositor, AI client, export, load sequencing, notifications"""
