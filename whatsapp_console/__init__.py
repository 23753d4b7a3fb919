"""WhatsApp Business console backend"""
