from rest_framework import serializers
from .models import HourLog, Attendance


class HourLogSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.full_name', read_only=True)
    job_title = serializers.CharField(source='job.title', read_only=True)

    class Meta:
        model = HourLog
        fields = ['id', 'user', 'user_name', 'job', 'job_title', 'date', 'start_time', 'end_time', 'hours',
                  'is_active', 'auto_stopped', 'is_paid', 'notes', 'created_at', 'updated_at']
        read_only_fields = ['auto_stopped', 'created_at', 'updated_at']
        extra_kwargs = {
            'user': {'required': False},
            'date': {'required': False},
            'start_time': {'required': False},
        }

    def validate(self, attrs):
        start_time = attrs.get('start_time', getattr(self.instance, 'start_time', None))
        end_time = attrs.get('end_time', getattr(self.instance, 'end_time', None))
        if start_time and end_time and end_time < start_time:
            raise serializers.ValidationError({'end_time': 'End time cannot be before the start time.'})
        hours = attrs.get('hours')
        if hours is not None and hours < 0:
            raise serializers.ValidationError({'hours': 'Hours cannot be negative.'})
        return attrs


class AttendanceSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.full_name', read_only=True)

    class Meta:
        model = Attendance
        fields = ['id', 'user', 'user_name', 'date', 'clock_in_time', 'clock_out_time', 'total_hours',
                  'created_at', 'updated_at']
        read_only_fields = fields
