# GuestPass Backend
