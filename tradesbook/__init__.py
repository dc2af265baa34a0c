"""tradesbook - TV installation booking marketplace API"""
